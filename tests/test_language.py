from readanything.ingest.language import LanguageDetector


def test_header_only_text_has_no_language() -> None:
    assert LanguageDetector().detect("--- Page 1 ---\n\n\n--- Page 2 ---\n\n") is None


def test_empty_text_has_no_language() -> None:
    assert LanguageDetector().detect("   ") is None
