"""
Tests for question text and source extraction.
"""

from conftest import FakeDriver, FakeElement, FakeQuestion, FakeSite
from question_grader.core.extraction import SubmissionExtractor
from question_grader.core.models import CODE_NOT_CAPTURED, NO_CODE_FILES


def extractor_for(question):
    site = FakeSite([question])
    site.markers[0].on_click()
    driver = FakeDriver(site)
    return SubmissionExtractor(driver, settle_ms=0), driver


def test_single_file_submission():
    extractor, _ = extractor_for(FakeQuestion(text="  Add numbers  ", code="print(1 + 2)"))

    submission = extractor.extract_submission(1)

    assert submission.question_text == "Add numbers"
    assert [(u.label, u.text) for u in submission.source_units] == [("code", "print(1 + 2)")]
    assert not submission.no_files


def test_missing_text_and_code_use_placeholders():
    extractor, _ = extractor_for(FakeQuestion(text=None, code=None))

    submission = extractor.extract_submission(4)

    assert submission.question_text == "Question 4"
    assert submission.source_units[0].text == CODE_NOT_CAPTURED


def test_text_falls_back_through_chain():
    extractor, driver = extractor_for(FakeQuestion(text=None))
    driver.overrides["question_text.class"] = [FakeElement("Reverse the list in place")]

    assert extractor.extract_question_text(1) == "Reverse the list in place"


def test_code_falls_back_to_editor_text():
    extractor, driver = extractor_for(FakeQuestion(code=None))
    driver.overrides["code.ace"] = [FakeElement("x = [1, 2]", value="")]

    assert extractor.extract_code(1) == "x = [1, 2]"


def test_multi_file_submission_reads_each_tab():
    files = [("index.html", "<h1>Hi</h1>"), ("style.css", "h1 { color: red; }")]
    extractor, _ = extractor_for(FakeQuestion(files=files))

    submission = extractor.extract_submission(1)

    assert [(u.label, u.text) for u in submission.source_units] == files
    assert not submission.no_files


def test_unlabelled_tab_gets_positional_label():
    extractor, driver = extractor_for(FakeQuestion(files=[("", "a = 1")]))

    submission = extractor.extract_submission(1)

    assert submission.source_units[0].label == "file1"


def test_tab_click_failure_records_sentinel():
    extractor, driver = extractor_for(FakeQuestion(files=[("main.py", "a = 1")]))
    driver.overrides["file_tabs.tab"] = [FakeElement("main.py", click_error=True)]

    submission = extractor.extract_submission(1)

    assert submission.source_units[0].text == CODE_NOT_CAPTURED


def test_file_selector_without_files():
    extractor, _ = extractor_for(FakeQuestion(files=[]))

    submission = extractor.extract_submission(1)

    assert submission.no_files
    assert submission.source_units[0].text == NO_CODE_FILES
