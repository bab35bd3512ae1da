"""Reply text for the intake conversation (prompts, notices, labels)."""

import intake.config as cfg

WELCOME = "👋 Welcome to the pre-consultation intake. I will ask a few short questions before your visit."

COMMANDS_HINT = "Send '{restart}' to start over, '{back}' to go back one step, '{end}' to stop, '{help}' for help."


def commands_hint() -> str:
    return COMMANDS_HINT.format(
        restart=cfg.RESTART_KEYWORD,
        back=cfg.BACK_KEYWORD,
        end=cfg.END_KEYWORD,
        help=cfg.HELP_KEYWORD,
    )


# --- identification --- #
PATIENT_MENU_TITLE = "👤 Who is this intake for? Reply with a number:"
NO_PATIENTS = "(no saved patients yet)"
ADD_PATIENT = "➕ Add a new patient"
PATIENT_DELETE_TITLE = "🗑️ You can keep up to {limit} patients. Reply with a number to remove one:"
PATIENT_DELETE_BACK = "0. Go back"
ASK_NAME = "1️⃣ Please enter the patient's full name (as on the ID card):"
ASK_BIRTH_YEAR = "2️⃣ Please enter the year of birth (e.g. 1978):"
ASK_SEX = "3️⃣ Sex:\n1. Male\n2. Female"
SEX_OPTIONS = {1: "male", 2: "female"}
ASK_ID_NUMBER = "4️⃣ Please enter the ID or passport number:"

# --- complaint --- #
LOCATION_TITLE = "📍 Where is the problem? Reply with a number:"
LOCATION_BACK = "0. Go back one level"
SYMPTOMS_TITLE = "🩺 Which symptoms do you have in {location}? Reply with one or more numbers (e.g. 1,3):"
SYMPTOMS_FREE_TEXT = (
    "🩺 There is no symptom list for {location} yet.\n"
    "Please type your symptoms, separated by commas (e.g. pain, swelling):"
)
ASK_ONSET = "🕒 When did it start? (e.g. 3 days ago, this morning)"
ASK_COURSE = "📈 How has it changed since it started? (e.g. getting worse, comes and goes)"
ASK_AGGRAVATING = "⬆️ What makes it worse? List items separated by commas, or reply 'none'."
ASK_RELIEVING = "⬇️ What makes it better? List items separated by commas, or reply 'none'."
ASK_ASSOCIATED = "➕ Any other symptoms at the same time? List them separated by commas, or reply 'none'."
ASK_SEVERITY = "🔢 How severe is it, from 0 (no discomfort) to 10 (worst imaginable)?"
ASK_IMPACT = "🏠 How does it affect your daily activities, sleep or work?"
RED_FLAGS_TITLE = "⚠️ Do you have any of the following? Reply with numbers separated by commas:"
RED_FLAG_OPTIONS = [
    "Chest pain or pressure",
    "Difficulty breathing",
    "Fainting or confusion",
    "Sudden weakness or numbness",
    "Sudden loss of vision",
    "High fever (above 39°C)",
    "Heavy bleeding",
    "None of these",
]
REVIEW_TITLE = "📝 Please check this complaint:"
REVIEW_OPTIONS = (
    "1. Correct, add another complaint\n"
    "2. Correct, continue\n"
    "3. Not correct, enter this complaint again"
)
REVIEW_OPTIONS_AT_LIMIT = (
    "2. Correct, continue\n"
    "3. Not correct, enter this complaint again"
)

# --- history --- #
CONDITIONS_TITLE = "📋 Have you ever had any of these conditions? Reply with numbers separated by commas (e.g. 1,3):"
CONDITION_OPTIONS = [
    "High blood pressure",
    "Diabetes",
    "Heart disease",
    "Kidney disease",
    "Liver disease",
    "Stroke",
    "Cancer",
    "Other",
    "None",
]
ASK_CONDITIONS_OTHER = "Please type the other conditions, separated by commas:"
ASK_MEDICATIONS = "💊 Which medicines are you taking now? List them separated by commas, or reply 'none'."
ASK_ALLERGIES = "🌰 Any drug or food allergies? List them separated by commas, or reply 'none'."
ASK_SMOKING = "🚬 Do you smoke?\n1. Yes\n2. No\n3. Quit"
SMOKING_OPTIONS = {1: "yes", 2: "no", 3: "quit"}
ASK_ALCOHOL = "🍷 Do you drink alcohol?\n1. Daily\n2. Occasionally\n3. Never"
ALCOHOL_OPTIONS = {1: "daily", 2: "occasionally", 3: "never"}
ASK_TRAVEL = "✈️ Have you travelled abroad in the last 3 months?\n1. Yes\n2. No"
TRAVEL_OPTIONS = {1: "yes", 2: "no"}

# --- summary / done --- #
SUMMARY_TITLE = "✅ Thank you. Here is everything you told us:"
SUMMARY_OPTIONS = (
    "1. Submit\n"
    "2. Change medical history\n"
    "3. Add another complaint"
)
SUMMARY_OPTIONS_AT_LIMIT = (
    "1. Submit\n"
    "2. Change medical history"
)
DONE = "✅ Your intake has been sent to the doctor. Thank you, and get well soon ❤️"
DONE_REPEAT = "This intake is finished. Send '{restart}' to start a new one."
ENDED = "🛑 Intake stopped. Send '{restart}' whenever you want to start again."

# --- labels --- #
NOT_STATED = "not stated"
NONE_LABEL = "none"
LABELS = {
    "patient_name": "Name",
    "birth_year": "Year of birth",
    "sex": "Sex",
    "id_number": "ID number",
    "location": "Location",
    "symptoms": "Symptoms",
    "onset": "Onset",
    "course": "Course",
    "aggravating": "Worse with",
    "relieving": "Better with",
    "associated": "Associated symptoms",
    "severity": "Severity (0-10)",
    "impact": "Impact on daily life",
    "red_flags": "Warning signs",
    "conditions": "Past conditions",
    "medications": "Medications",
    "allergies": "Allergies",
    "smoking": "Smoking",
    "alcohol": "Alcohol",
    "travel": "Recent travel",
}

# --- page controls --- #
CONTROL_PREV = "⬅️ Previous page"
CONTROL_NEXT = "➡️ Next page"
CONTROL_CLEAR = "🧹 Clear selection"
CONTROL_CONFIRM = "✅ Confirm"
CONTROL_RETURN = "0. Return to the previous step"
CHECKED = "☑"
UNCHECKED = "☐"

# --- notices --- #
NOTICE_INVALID_NUMBER = "⚠️ Please reply with one of the numbers shown."
NOTICE_INVALID_LIST = "⚠️ Please reply with numbers from the list, separated by commas (e.g. 1,3)."
NOTICE_EMPTY_SELECTION = "⚠️ Please select at least one item before confirming."
NOTICE_SELECTION_CLEARED = "🧹 Selection cleared."
NOTICE_EMPTY_MENU = "⚠️ No options are available right now. Please try again later."
NOTICE_ID_NUMBER = "⚠️ Please enter at least {min_length} characters."
NOTICE_PATIENT_SELECTED = "👤 Intake for {name}."
NOTICE_PATIENT_LIMIT = "⚠️ The patient list is full."
NOTICE_PATIENT_REMOVED = "🗑️ {name} was removed."
NOTICE_NAME = "⚠️ Please enter a valid name."
NOTICE_YEAR = "⚠️ Please enter a 4-digit year between {min_year} and {max_year}."
NOTICE_TEXT_REQUIRED = "⚠️ Please type a short answer."
NOTICE_LIST_REQUIRED = "⚠️ Please list at least one item, or reply 'none'."
NOTICE_NO_LOCATION = "⚠️ We lost track of where the problem is. Let's choose the location again."
NOTICE_AT_START = "You are already at the first step."
NOTICE_SEVERITY_UNSCORED = "(Severity recorded as unscored.)"
NOTICE_COMPLAINT_LIMIT = "⚠️ You can enter up to {limit} complaints."

# --- service-level replies --- #
UNAVAILABLE = "⚠️ The service is temporarily unavailable. Please try again in a moment."
BUSY = "⏳ We are busy right now. Please send your last message again in a moment."
