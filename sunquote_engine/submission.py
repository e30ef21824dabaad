import logging
from dataclasses import dataclass
import requests
from sunquote_engine.form_state import INTERNAL_KEYS

LEAD_CAPTURE_CONFIG = {"url": None}
LIST_DELIMITER = ", "

submission_logger = logging.getLogger('submission')


@dataclass(frozen=True)
class SubmissionResult:
    success: bool
    error: str | None = None
    error_kind: str | None = None


def _stringify(value):
    """Flattens one Form State value. Returns None for values that are left out of the record."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return LIST_DELIMITER.join(str(v) for v in value if v not in (None, ""))
    return str(value)


def build_submission_record(form_data: dict, report) -> dict:
    """
    Flat string-keyed record for the lead-capture backend:
    the user's answers (minus internal keys) merged with the stringified report.
    """
    record = {}
    for key, value in form_data.items():
        if key in INTERNAL_KEYS:
            continue
        flattened = _stringify(value)
        if flattened is not None:
            record[key] = flattened
    record.update(report.display_fields())
    return record


def submit_lead(record: dict) -> SubmissionResult:
    """POSTs the record form-encoded. Any transport error or non-2xx status is a failure."""
    url = LEAD_CAPTURE_CONFIG["url"]
    if not url:
        submission_logger.error("Lead capture URL is not configured")
        return SubmissionResult(success=False, error_kind="submission",
                                error="We couldn't send your details right now. Please try again.")

    submission_logger.info(f"Submitting lead with {len(record)} fields")
    try:
        response = requests.post(url, data=record, timeout=15)
    except requests.exceptions.RequestException as e:
        submission_logger.error(f"Lead submission failed: {e}")
        return SubmissionResult(success=False, error_kind="submission",
                                error="We couldn't send your details. Please try again.")
    if not 200 <= response.status_code < 300:
        submission_logger.error(f"Lead capture returned HTTP {response.status_code}")
        return SubmissionResult(success=False, error_kind="submission",
                                error="We couldn't send your details. Please try again.")
    submission_logger.info("Lead submitted successfully")
    return SubmissionResult(success=True)
