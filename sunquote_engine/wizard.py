"""
Wizard State Machine.

All session state lives in a `WizardSession` object; the machine is a thin set of
transitions over it. Network work for the address and lead steps is split into
`run_request` (no state access beyond a snapshot) and `apply_outcome` (guards
against stale responses), so a caller can await the request however it likes.
"""
import logging
from dataclasses import dataclass, field
from sunquote_engine.calculation_engine import CalculationOutcome, ResultReport, calculate_results
from sunquote_engine.form_state import (
    SELECTED_SUGGESTION, apply_field_edit, apply_location, clear_location
)
from sunquote_engine.location_service import resolve_address, resolve_location
from sunquote_engine.production_service import fetch_annual_production
from sunquote_engine.step_catalog import STEPS, is_progress_step, step_index, visible_step_count
from sunquote_engine.submission import SubmissionResult, build_submission_record, submit_lead
from sunquote_engine.validation import can_advance, validation_message

wizard_logger = logging.getLogger('wizard')

CALCULATED_RESULTS = "calculatedResults"

REQUEST_LOCATION = "location"
REQUEST_REPORT = "report"


class Transition:
    ADVANCED = "advanced"
    BLOCKED = "blocked"
    PENDING = "pending"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class PendingRequest:
    request_id: int
    step_index: int
    kind: str  # REQUEST_LOCATION | REQUEST_REPORT


@dataclass(frozen=True)
class ReportOutcome:
    calculation: CalculationOutcome
    submission: SubmissionResult | None = None


@dataclass
class WizardSession:
    current_step_index: int = 0
    form_data: dict = field(default_factory=dict)
    validation_error: str | None = None
    service_error: str | None = None
    report: ResultReport | None = None
    pending: PendingRequest | None = None
    request_counter: int = 0


class WizardMachine:
    def __init__(self, session: WizardSession, steps=STEPS,
                 resolver=resolve_location, address_resolver=resolve_address,
                 production_fetcher=fetch_annual_production, lead_submitter=submit_lead):
        self.session = session
        self.steps = steps
        self.resolver = resolver
        self.address_resolver = address_resolver
        self.production_fetcher = production_fetcher
        self.lead_submitter = lead_submitter

    # ---- Queries ----
    @property
    def current_step(self):
        return self.steps[self.session.current_step_index]

    @property
    def is_terminal(self) -> bool:
        return self.current_step.type == "thankyou"

    def can_advance(self) -> bool:
        return can_advance(self.current_step, self.session.form_data)

    def progress(self):
        """(position, total) for the progress indicator, or None on steps that don't show it."""
        if not is_progress_step(self.current_step):
            return None
        return self.session.current_step_index, visible_step_count(self.steps)

    # ---- Input ----
    def edit(self, field_id: str, value) -> bool:
        """Applies one field edit and re-validates the current step. Never moves the step index."""
        session = self.session
        step = self.current_step
        previous = session.form_data.get(field_id)
        form_data = session.form_data

        if step.type == "address" and field_id == step.id and value != previous:
            # A resolved location belongs to the old input
            form_data = clear_location(form_data, keep=(step.id,))
            if session.pending is not None and session.pending.kind == REQUEST_LOCATION:
                wizard_logger.info(f"Superseding location request {session.pending.request_id} after edit")
                session.pending = None
            selected = form_data.get(SELECTED_SUGGESTION)
            if selected is not None and getattr(selected, "display_name", None) != value:
                form_data = {k: v for k, v in form_data.items() if k != SELECTED_SUGGESTION}

        session.form_data = apply_field_edit(form_data, field_id, value, step)

        valid = self.can_advance()
        if valid and session.validation_error:
            session.validation_error = None
        return valid

    def select_suggestion(self, candidate):
        """Free-text address: the user picked an autocomplete suggestion."""
        step = self.current_step
        self.edit(step.id, candidate.display_name)
        self.session.form_data = {**self.session.form_data, SELECTED_SUGGESTION: candidate}

    # ---- Transitions ----
    def advance(self) -> str:
        session = self.session
        step = self.current_step

        if self.is_terminal:
            return Transition.TERMINAL
        if session.pending is not None:
            # One request per advance attempt
            return Transition.PENDING

        if not self.can_advance():
            session.validation_error = validation_message(step)
            wizard_logger.info(f"Advance blocked on step '{step.id}'")
            return Transition.BLOCKED

        session.validation_error = None
        session.service_error = None

        if step.type == "address":
            self._begin_request(REQUEST_LOCATION)
            return Transition.PENDING
        if step.type == "lead":
            self._discard_report()
            self._begin_request(REQUEST_REPORT)
            return Transition.PENDING
        if step.type == "results":
            self.jump_to("thankyou")
            return Transition.ADVANCED

        session.current_step_index += 1
        return Transition.ADVANCED

    def retreat(self) -> bool:
        session = self.session
        if session.current_step_index == 0 or self.is_terminal:
            return False
        session.pending = None
        session.validation_error = None
        session.service_error = None
        session.current_step_index -= 1
        return True

    def jump_to(self, step_id: str):
        session = self.session
        session.current_step_index = step_index(step_id, self.steps)
        session.pending = None
        session.validation_error = None
        session.service_error = None

    def reset(self):
        self.session.__dict__.update(WizardSession().__dict__)
        wizard_logger.info("Wizard session reset")

    def _discard_report(self):
        session = self.session
        session.report = None
        session.form_data = {k: v for k, v in session.form_data.items() if k != CALCULATED_RESULTS}

    # ---- Asynchronous requests ----
    def _begin_request(self, kind: str) -> PendingRequest:
        session = self.session
        session.request_counter += 1
        session.pending = PendingRequest(session.request_counter, session.current_step_index, kind)
        wizard_logger.info(f"Request {session.pending.request_id} ({kind}) started on step {session.current_step_index}")
        return session.pending

    def run_request(self, request: PendingRequest):
        """Does the network work for `request`. Reads a snapshot of the answers and writes nothing."""
        form_data = dict(self.session.form_data)
        step = self.steps[request.step_index]

        if request.kind == REQUEST_LOCATION:
            if step.free_text:
                return self.address_resolver(form_data.get(step.id), form_data.get(SELECTED_SUGGESTION))
            return self.resolver(form_data.get(step.id))

        calculation = calculate_results(form_data, fetch_production=self.production_fetcher)
        if not calculation.success:
            return ReportOutcome(calculation=calculation)
        record = build_submission_record(form_data, calculation.report)
        return ReportOutcome(calculation=calculation, submission=self.lead_submitter(record))

    def apply_outcome(self, request: PendingRequest, outcome) -> bool:
        """Applies a finished request. Returns False if the response was stale and discarded."""
        session = self.session
        if session.pending != request or session.current_step_index != request.step_index:
            wizard_logger.info(f"Discarding stale response for request {request.request_id}")
            if session.pending == request:
                session.pending = None
            return False
        session.pending = None

        if request.kind == REQUEST_LOCATION:
            step = self.steps[request.step_index]
            if not outcome.success:
                session.form_data = clear_location(session.form_data, keep=(step.id,))
                session.service_error = outcome.error
                wizard_logger.warning(f"Location resolution failed ({outcome.error_kind})")
                return True
            session.form_data = apply_location(session.form_data, outcome)
            session.current_step_index += 1
            return True

        calculation, submission = outcome.calculation, outcome.submission
        if not calculation.success:
            self._discard_report()
            session.service_error = calculation.error
            wizard_logger.warning(f"Calculation failed ({calculation.error_kind})")
            return True
        if submission is None or not submission.success:
            # A report is never kept past a failed submit
            self._discard_report()
            session.service_error = submission.error if submission else "We couldn't send your details. Please try again."
            return True

        session.report = calculation.report
        session.form_data = {**session.form_data, CALCULATED_RESULTS: calculation.report.display_fields()}
        self.jump_to("results")
        return True

    def process_pending(self) -> bool:
        request = self.session.pending
        if request is None:
            return False
        return self.apply_outcome(request, self.run_request(request))
