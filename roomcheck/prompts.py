"""
RoomCheck Prompt Templates

Instructions sent to the vision model for room inspection scoring.
"""

# Shown to the model in both modes; the scorer looks for these exact markers
NOT_A_ROOM_RULE = (
    'IMPORTANT: answer exactly "Score: 0" followed by "Cannot evaluate: '
    '[image type] - not a dormitory room photo" when:\n'
    "- the image is not a dormitory room (game screenshot, internet image, "
    "movie or drama scene)\n"
    "- it shows a bathroom, hallway, staircase, lobby or the outdoors\n"
    "- it is a selfie where the room is not visible\n"
    "- it is a photo of a computer or TV screen\n"
    "- it is a drawing, illustration or cartoon\n"
)

RESPONSE_FORMAT = (
    "Response format:\n"
    "Score: X\n"
    "{explanation} (under 100 characters)\n"
)

# Scoring criteria with their point weights (sum to 10)
CRITERIA = {
    "single": [
        ("Tidiness", 3, "how well belongings are put away"),
        ("Cleanliness", 3, "floor, desk and bed cleanliness"),
        ("Safety", 2, "no hazards visible"),
        ("Livability", 2, "overall comfort of the room"),
    ],
    "comparison": [
        ("Tidiness", 3, "tidiness compared with the reference photo"),
        ("Cleanliness", 3, "cleanliness compared with the reference photo"),
        ("Safety", 2, "no hazards visible"),
        ("Overall similarity", 2, "overall condition compared with the reference room"),
    ],
}

INSTRUCTIONS = {
    "single": {
        "name": "Single photo",
        "description": "Score one submitted room photo on a 10-point scale",
        "intro": "Score this dormitory room photo out of 10.\n",
        "explanation": "A short evaluation",
    },
    "comparison": {
        "name": "Reference comparison",
        "description": "Score a submitted photo against the administrator's reference photo",
        "intro": (
            "Compare two dormitory room photos.\n\n"
            "First image: the reference (model) room photo registered by the administrator\n"
            "Second image: the inspection photo submitted by the student\n"
        ),
        "explanation": "An evaluation relative to the reference photo",
    },
}

CONNECTION_TEST_PROMPT = "Hello, this is a connection test."


def _format_criteria(mode: str) -> str:
    lines = ["Criteria (apply only to dormitory room photos):"]
    for name, points, detail in CRITERIA[mode]:
        lines.append(f"- {name} ({points} points): {detail}")
    return "\n".join(lines) + "\n"


def get_prompt(mode: str = "single") -> str:
    """
    Build the scoring instruction for a mode.

    Args:
        mode: ``single`` or ``comparison``

    Returns:
        The full instruction text
    """
    if mode not in INSTRUCTIONS:
        raise ValueError(f"Unknown prompt mode: {mode}")

    preset = INSTRUCTIONS[mode]
    return "\n".join([
        preset["intro"],
        NOT_A_ROOM_RULE,
        _format_criteria(mode),
        RESPONSE_FORMAT.format(explanation=preset["explanation"]),
    ])
