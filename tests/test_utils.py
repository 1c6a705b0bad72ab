from core.comic_converter.utils import generate_run_id, safe_filename, slugify, unique_name


def test_slugify_basic() -> None:
    assert slugify("Hello World!.cbz") == "Hello-World.cbz"


def test_safe_filename_keeps_spaces_and_unicode() -> None:
    assert safe_filename("Chapter 1: The Start?") == "Chapter 1_ The Start_"
    assert safe_filename("Tōkyō ★ Nights") == "Tōkyō ★ Nights"


def test_safe_filename_strips_trailing_dots() -> None:
    assert safe_filename("Wait... ") == "Wait"
    assert safe_filename("...") == "untitled"
    assert safe_filename("") == "untitled"


def test_safe_filename_truncates() -> None:
    assert len(safe_filename("x" * 400)) == 150


def test_unique_name_adds_counter() -> None:
    taken: set[str] = set()
    assert unique_name("Same", taken) == "Same"
    assert unique_name("same", taken) == "same (2)"
    assert unique_name("Same", taken) == "Same (3)"
    assert taken == {"same", "same (2)", "same (3)"}


def test_generate_run_id_unique() -> None:
    first = generate_run_id("test")
    second = generate_run_id("test")
    assert first != second
    assert first.startswith("test-")
