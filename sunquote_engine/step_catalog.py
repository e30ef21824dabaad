from dataclasses import dataclass
from sunquote_engine.utils import NON_PROGRESS_STEP_TYPES

STEP_TYPES = (
    "intro", "text", "address", "radio", "select", "checkbox",
    "customEnergyInput", "lead", "results", "thankyou",
)


@dataclass(frozen=True)
class StepOption:
    label: str
    value: str


@dataclass(frozen=True)
class StepDefinition:
    """One question in the wizard. `id` is also the Form State key for its answer."""
    id: str
    type: str
    title: str
    question: str = ""
    options: tuple = ()
    hint: str | None = None
    optional: bool = False
    multi_select: bool = False
    free_text: bool = False  # address step: full street address instead of a postcode
    fields: tuple = ()  # sub-field ids for composite steps (customEnergyInput)

    def __post_init__(self):
        if self.type not in STEP_TYPES:
            raise ValueError(f"Unknown step type '{self.type}' for step '{self.id}'.")


def _options(*pairs):
    return tuple(StepOption(label, value) for label, value in pairs)


# ---- Ordered Step Catalog for the quote questionnaire ----
STEPS = (
    StepDefinition(
        id="intro",
        type="intro",
        title="Calculate Your Solar Potential in 60 Seconds",
        question="Find out how much you could save with solar. It's quick, personalised, and completely free – no obligation.",
    ),
    StepDefinition(
        id="postcode",
        type="address",
        title="Step 1 – Location",
        question="What's your postcode?",
        hint="We use this to find your location for accurate solar and rebate calculations.",
    ),
    StepDefinition(
        id="ownership",
        type="radio",
        title="Step 2 – Ownership",
        question="Do you own this property?",
        options=_options(("Yes", "yes"), ("No", "no"), ("Not sure", "not_sure")),
        hint="Most solar systems are installed on owner-occupied buildings.",
    ),
    StepDefinition(
        id="propertyType",
        type="radio",
        title="Step 3 – Property Type",
        question="What kind of property is it?",
        options=_options(
            ("House", "house"),
            ("Apartment / Unit", "apartment"),
            ("Business / Commercial", "business"),
            ("Farm / Other", "farm"),
        ),
        hint="Business properties can qualify for different rebates.",
    ),
    StepDefinition(
        id="energyUsage",
        type="customEnergyInput",
        title="Step 4 – Electricity Bill",
        question="How much is your electricity bill?",
        options=_options(("Monthly", "monthly"), ("Every two months", "bimonthly"), ("Quarterly", "quarterly")),
        hint="We use your bill to size a system that matches your usage.",
        fields=("billAmount", "billFrequency", "energyPrice"),
    ),
    StepDefinition(
        id="batteryInterest",
        type="radio",
        title="Step 5 – Battery Interest",
        question="Are you interested in battery storage?",
        options=_options(("Yes", "yes"), ("Maybe", "maybe"), ("No", "no")),
        hint="Battery systems can increase savings and protect against blackouts.",
    ),
    StepDefinition(
        id="futureUsage",
        type="checkbox",
        title="Step 6 – Future Usage",
        question="Are you planning to install any of the following?",
        multi_select=True,
        options=_options(
            ("EV charger", "ev_charger"),
            ("Pool heating", "pool_heating"),
            ("Air conditioning", "air_conditioning"),
            ("Heat pump", "heat_pump"),
            ("None of the above", "none"),
        ),
        hint="This helps us estimate your future energy needs more accurately.",
    ),
    StepDefinition(
        id="roofOrientation",
        type="radio",
        title="Step 7 – Roof Direction",
        question="Which direction does your roof mainly face?",
        options=_options(
            ("North", "north"), ("East", "east"), ("West", "west"),
            ("South", "south"), ("Mixed / Not sure", "mixed_not_sure"),
        ),
    ),
    StepDefinition(
        id="roofPitch",
        type="radio",
        title="Step 8 – Roof Pitch",
        question="What's your roof angle?",
        optional=True,
        options=_options(
            ("Flat", "flat"),
            ("Slight (0–15°)", "slight_0_15"),
            ("Standard (15–30°)", "standard_15_30"),
            ("Steep (30°+)", "steep_30_plus"),
            ("Not sure", "not_sure"),
        ),
    ),
    StepDefinition(
        id="installTimeframe",
        type="select",
        title="Step 9 – Timing",
        question="When would you like your system installed?",
        optional=True,
        options=_options(
            ("As soon as possible", "asap"),
            ("Within 3 months", "within_3_months"),
            ("Within 6 months", "within_6_months"),
            ("Just researching", "researching"),
        ),
    ),
    StepDefinition(
        id="lead",
        type="lead",
        title="Your Results Are Ready! 🎉",
        question="We've calculated your ideal solar setup based on your answers. "
                 "Enter your details to unlock your full report – including potential savings, system size, and rebates.",
        fields=("firstName", "emailAddress", "phoneNumber", "consent"),
    ),
    StepDefinition(
        id="results",
        type="results",
        title="🎉 Your Custom Solar Report Is Ready!",
        question="Based on your property and energy profile, we've calculated your ideal solar system – "
                 "including expected savings, system size, and payback.",
    ),
    StepDefinition(
        id="thankyou",
        type="thankyou",
        title="🎉 Thank You – Your Quote Is on Its Way!",
        question="One of our certified solar experts will review your information and send you a "
                 "personalised quote within the next 24–48 hours.",
    ),
)


def step_index(step_id: str, steps=STEPS) -> int:
    for index, step in enumerate(steps):
        if step.id == step_id:
            return index
    raise KeyError(f"No step with id '{step_id}'.")


def get_step(step_id: str, steps=STEPS) -> StepDefinition:
    return steps[step_index(step_id, steps)]


def visible_step_count(steps=STEPS) -> int:
    """Number of steps shown in the progress indicator: everything before the first lead step."""
    for index, step in enumerate(steps):
        if step.type == "lead":
            return index
    return len(steps)


def is_progress_step(step: StepDefinition) -> bool:
    return step.type not in NON_PROGRESS_STEP_TYPES


def label_for_value(step: StepDefinition | None, value) -> str:
    """Display label for a stored option value (lists are joined)."""
    if value is None or value == "" or value == []:
        return "N/A"
    if isinstance(value, (list, tuple)):
        return ", ".join(label_for_value(step, v) for v in value)
    if step is None:
        return str(value)
    for option in step.options:
        if option.value == value:
            return option.label
    return str(value)


def validate_catalog(steps=STEPS):
    """Raises ValueError if step ids are not unique."""
    seen = set()
    for step in steps:
        if step.id in seen:
            raise ValueError(f"Duplicate step id '{step.id}'.")
        seen.add(step.id)
    return True


validate_catalog(STEPS)
