"""Character name extraction from manuscript text.

Several regex passes feed one mention counter. Common words are then
filtered out, variants of the same person are merged, and each remaining
name is split into title, first name and last name.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# An optional abbreviated title, then a run of 1-4 capitalized words on one line
_NAME = (
    r"(?:(?:Mr|Mrs|Ms|Mx|Dr|Prof|Capt|Lt|Sgt|Col|Gen|Rev)\. )?"
    r"[A-Z][a-zA-Z]*(?: [A-Z][a-zA-Z]*){0,3}"
)

SPEECH_VERBS = (
    "said", "whispered", "asked", "replied", "shouted", "murmured",
    "exclaimed", "responded", "called", "muttered", "answered", "stated",
    "declared", "announced", "remarked", "noted", "added", "continued",
    "interrupted", "inquired", "yelled", "explained", "insisted", "sighed",
    "laughed", "cried", "groaned", "argued", "agreed", "disagreed",
)  # fmt: skip

_VERBS = "|".join(SPEECH_VERBS)
_DIALOGUE_BEFORE = re.compile(rf"\b({_NAME}) (?i:{_VERBS})\b")
_DIALOGUE_AFTER = re.compile(rf"\b(?i:{_VERBS}) ({_NAME})\b")
_SENTENCE_START = re.compile(rf"(?:(?<=[.!?])\s+|^[ \t]*)({_NAME})\b", re.MULTILINE)
_CAPITALIZED_RUN = re.compile(rf"\b{_NAME}\b")
_CAPITALIZED_WORD = re.compile(r"\b[A-Z][a-zA-Z]*\b")
_DIRECT_ADDRESS = (
    re.compile(rf"[\"'“][^,\"'“”]+, ({_NAME})[\"'”!?.]"),
    re.compile(rf",\s({_NAME}),"),
    re.compile(rf"\b({_NAME})!"),
    re.compile(rf"[\"“]({_NAME}),"),
    re.compile(rf"\b({_NAME}), (?i:please|would you|could you|can you)"),
)
_POSSESSIVE = re.compile(rf"\b({_NAME})['’]s\b")
_INTRODUCTIONS = (
    re.compile(
        rf"\b(?i:a|the) (?i:man|woman|boy|girl|person|gentleman|lady) (?i:named) ({_NAME})\b"
    ),
    re.compile(
        rf"\b({_NAME}) (?i:was) (?i:a|an|the) "
        r"(?i:man|woman|boy|girl|person|gentleman|lady)\b"
    ),
    re.compile(rf"\b(?i:introduced) (?i:himself|herself|themselves|as)(?: as)? ({_NAME})\b"),
    re.compile(rf"\b(?i:called) (?i:himself|herself|themselves) ({_NAME})\b"),
)
_INVALID_CHARS = re.compile(r"[0-9@#$%^&*()_+=\[\]{}|\\;:\"<>?]")

# Single capitalized words must appear this often to count on their own
FREQUENT_WORD_MIN = 3

LAST_NAME_TITLES = frozenset({
    "captain", "capt", "lieutenant", "lt", "general", "gen", "colonel", "col",
    "major", "maj", "sergeant", "sgt", "corporal", "corp", "officer", "constable",
    "detective", "inspector", "chief", "commander", "admiral", "private", "pvt",
    "ensign", "commodore", "marshal", "sheriff", "agent", "trooper", "deputy",
})  # fmt: skip
AMBIGUOUS_TITLES = frozenset({
    "dr", "doctor", "professor", "prof", "rev", "reverend", "judge", "justice",
    "principal", "dean", "president", "director", "senator", "councillor", "minister",
})  # fmt: skip
FIRST_NAME_TITLES = frozenset({
    "sir", "dame", "king", "queen", "prince", "princess", "duke", "duchess",
    "baron", "baroness", "count", "countess", "earl", "lord", "lady", "master",
})  # fmt: skip
FORMAL_TITLES = frozenset({"mr", "mrs", "ms", "miss", "mx"})

NICKNAMES: dict[str, str] = {
    "Bob": "Robert", "Rob": "Robert", "Bobby": "Robert",
    "Jim": "James", "Jimmy": "James",
    "Bill": "William", "Will": "William", "Billy": "William",
    "Tom": "Thomas", "Tommy": "Thomas",
    "Mike": "Michael", "Mikey": "Michael",
    "Dave": "David", "Davey": "David",
    "Joe": "Joseph", "Joey": "Joseph",
    "Chris": "Christopher",
    "Kate": "Katherine", "Katie": "Katherine", "Kathy": "Katherine",
    "Beth": "Elizabeth", "Liz": "Elizabeth", "Lizzy": "Elizabeth", "Eliza": "Elizabeth",
    "Maggie": "Margaret", "Peggy": "Margaret", "Meg": "Margaret",
    "Alex": "Alexander", "Al": "Albert",
    "Dan": "Daniel", "Danny": "Daniel",
    "Nate": "Nathan", "Nat": "Nathaniel",
    "Sam": "Samuel", "Sammy": "Samuel",
    "Tony": "Anthony",
    "Dick": "Richard", "Rick": "Richard", "Ricky": "Richard", "Rich": "Richard",
    "Gabe": "Gabriel", "Gus": "Augustus",
    "Vicky": "Victoria", "Vic": "Victor",
    "Ollie": "Oliver",
    "Ed": "Edward", "Eddie": "Edward",
    "Ted": "Theodore", "Teddy": "Theodore", "Theo": "Theodore",
    "Jon": "Jonathan", "Jonny": "Jonathan",
    "Jack": "John", "Johnny": "John",
    "Matt": "Matthew", "Matty": "Matthew",
    "Nick": "Nicholas",
    "Pat": "Patrick", "Patty": "Patricia", "Pam": "Pamela",
    "Ray": "Raymond", "Ron": "Ronald", "Ronnie": "Ronald",
    "Steph": "Stephanie", "Steve": "Stephen", "Stevie": "Stephen",
    "Sue": "Susan", "Susie": "Susan", "Suzy": "Susan",
    "Zach": "Zachary", "Zack": "Zachary",
}  # fmt: skip

# Capitalized words that are almost never character names (compared lowercase)
COMMON_WORDS = frozenset(word.lower() for word in (
    # Days and months
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
    "January", "February", "March", "April", "May", "June", "July", "August",
    "September", "October", "November", "December",
    # Places and directions
    "America", "England", "London", "Paris", "New York", "Chicago", "Boston",
    "North", "South", "East", "West", "Northeast", "Northwest", "Southeast", "Southwest",
    # Articles, conjunctions and book structure
    "The", "I", "A", "An", "And", "But", "Or", "For", "Nor", "So", "Yet", "If",
    "Chapter", "Book", "Volume", "Part", "Section", "Page", "House", "Street",
    "Prologue", "Epilogue", "Contents",
    # Pronouns and forms of be
    "We", "You", "They", "He", "She", "It", "Me", "My", "Mine", "Your", "Yours",
    "His", "Her", "Hers", "Their", "Theirs", "Our", "Ours", "Its", "This", "That",
    "These", "Those", "Am", "Is", "Are", "Was", "Were", "Be", "Been", "Being", "Him",
    "Them", "Us", "Himself", "Herself", "Itself", "Yourself", "Myself",
    # Verbs and prepositions
    "Do", "Does", "Did", "Have", "Has", "Had", "Can", "Could", "Will", "Would",
    "Should", "Might", "Must", "Shall", "About", "Above", "Across", "After",
    "Against", "Along", "Among", "Around", "At", "Before", "Behind", "Below",
    "Beneath", "Beside", "Between", "Beyond", "By", "Down", "During", "Except",
    "From", "In", "Inside", "Into", "Like", "Near", "Of", "Off", "On", "Out",
    "Outside", "Over", "Past", "Since", "Through", "Throughout", "To", "Toward",
    "Under", "Until", "Up", "Upon", "With", "Within", "Without", "As",
    # Question words and sentence starters
    "What", "When", "Where", "Which", "While", "Who", "Whom", "Whose", "Why", "How",
    "However", "Although", "Because", "Perhaps", "Maybe", "Meanwhile", "Suddenly",
    "Finally", "Still", "Then", "There", "Here", "Now", "Once", "Later", "Soon",
    "Yes", "No", "Not", "Oh", "Ah", "Hey", "Hmm", "Okay", "Alright", "Well", "Please",
    "Thanks", "Thank", "Yeah", "Aye", "Wow", "Sorry", "Let", "Come", "Look", "Listen",
    "Wait", "Stop", "Tell", "Think", "Know", "See", "Get", "Got", "Take", "Go",
    "Very", "Really", "Quite", "Rather", "Too", "Enough", "Just", "Almost",
    "Also", "Even", "Already", "Always", "Never", "Often", "Sometimes", "Usually",
    "Again", "Everyone", "Everything", "Someone", "Something", "Nobody", "Nothing",
    "Anyone", "Anything", "Somewhere", "Together", "Instead", "Whatever",
    # Adjectives and numbers
    "Good", "Bad", "Big", "Small", "Old", "New", "High", "Low", "Long", "Short",
    "Many", "Few", "Much", "Little", "Same", "Different", "Other", "Another",
    "Such", "Next", "Last", "First", "Second", "Third", "All", "Any", "Each",
    "Every", "Some", "Only", "Own", "Sure", "More", "Most", "Less", "Least", "Both",
    "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine", "Ten",
    "Hundred", "Great", "Right", "Left", "True", "Dark", "Light",
    # Bare titles and family words
    "Mr", "Mrs", "Ms", "Miss", "Sir", "Lady", "Lord", "Master", "Captain", "King",
    "Queen", "Mister", "Madam", "Mom", "Dad", "Mother", "Father", "God", "Gods",
    # Time words
    "Today", "Tomorrow", "Yesterday", "Morning", "Evening", "Night", "Day", "Time",
))  # fmt: skip

# Words that can never stand alone as a name, even before filtering
_CAPITALIZED_FUNCTION_WORDS = frozenset({
    "The", "A", "An", "And", "But", "Or", "For", "Nor", "So", "Yet",
    "In", "On", "At", "To", "By", "As", "Of", "From", "With", "About",
})  # fmt: skip


@dataclass
class ExtractedName:
    """A probable character found in the text."""

    name: str
    mentions: int
    variants: list[str] = field(default_factory=list)
    first_name: str = ""
    last_name: str = ""
    title: str = ""


def is_likely_character_name(name: str) -> bool:
    """Cheap shape check applied to every candidate.

    Rejects strings shorter than 3 characters, without a leading capital,
    written in all caps or containing digits or symbols.
    """
    if len(name) < 3:
        return False
    if not name[0].isupper():
        return False
    if name == name.upper():
        return False
    if _INVALID_CHARS.search(name):
        return False
    return name not in _CAPITALIZED_FUNCTION_WORDS


def _strip_leading_common_words(name: str) -> str:
    """Drop sentence starters glued to a name ("Then John" -> "John")."""
    words = name.split(" ")
    while len(words) > 1 and words[0].lower() in COMMON_WORDS:
        if _title_category(words[0]) is not None:
            break
        words.pop(0)
    return " ".join(words)


def _count(counter: Counter, candidates: list[str]) -> None:
    for candidate in candidates:
        name = _strip_leading_common_words(candidate.strip())
        if is_likely_character_name(name):
            counter[name] += 1


def _dialogue_mentions(text: str) -> list[str]:
    return _DIALOGUE_BEFORE.findall(text) + _DIALOGUE_AFTER.findall(text)


def _sentence_start_mentions(text: str) -> list[str]:
    return _SENTENCE_START.findall(text)


def _capitalized_run_mentions(text: str) -> list[str]:
    return _CAPITALIZED_RUN.findall(text)


def _frequent_word_mentions(text: str) -> list[str]:
    counts = Counter(w for w in _CAPITALIZED_WORD.findall(text) if is_likely_character_name(w))
    return [word for word, n in counts.items() if n >= FREQUENT_WORD_MIN for _ in range(n)]


def _direct_address_mentions(text: str) -> list[str]:
    return [name for pattern in _DIRECT_ADDRESS for name in pattern.findall(text)]


def _possessive_mentions(text: str) -> list[str]:
    return _POSSESSIVE.findall(text)


def _introduction_mentions(text: str) -> list[str]:
    return [name for pattern in _INTRODUCTIONS for name in pattern.findall(text)]


DETECTION_PASSES = (
    _dialogue_mentions,
    _sentence_start_mentions,
    _capitalized_run_mentions,
    _frequent_word_mentions,
    _direct_address_mentions,
    _possessive_mentions,
    _introduction_mentions,
)


def count_mentions(text: str) -> Counter:
    """Run every detection pass over *text* and count candidate names."""
    counter: Counter = Counter()
    for detect in DETECTION_PASSES:
        before = sum(counter.values())
        _count(counter, detect(text))
        logger.debug("%s: %d mentions", detect.__name__, sum(counter.values()) - before)
    return counter


def filter_common_words(counter: Counter) -> Counter:
    """Drop candidates that are common capitalized words."""
    return Counter({name: n for name, n in counter.items() if name.lower() not in COMMON_WORDS})


def combine_variants(counter: Counter) -> dict[str, tuple[int, list[str]]]:
    """Merge first-name-only entries and nicknames into full names.

    Returns:
        Mapping of name to (mentions, variants).
    """
    merged: dict[str, tuple[int, list[str]]] = {
        name: (n, []) for name, n in counter.most_common()
    }

    def absorb(target: str, source: str) -> None:
        target_count, target_variants = merged[target]
        source_count, source_variants = merged.pop(source)
        merged[target] = (target_count + source_count, target_variants + [source, *source_variants])

    # A lone first name joins the most mentioned full name starting with it
    for name in [n for n in merged if " " in n]:
        if name not in merged:
            continue
        first = name.split(" ")[0]
        if first in merged and _title_category(first) is None:
            absorb(name, first)

    # A nickname joins the most mentioned entry using the formal first name
    for name in list(merged):
        if name not in merged:
            continue
        formal = NICKNAMES.get(name.split(" ")[0])
        if formal is None:
            continue
        target = next(
            (other for other in merged if other != name and other.split(" ")[0] == formal),
            None,
        )
        if target is not None:
            absorb(target, name)
    return merged


def _title_category(word: str) -> str | None:
    key = word.rstrip(".").lower()
    if key in LAST_NAME_TITLES:
        return "last"
    if key in FORMAL_TITLES:
        return "formal"
    if key in FIRST_NAME_TITLES:
        return "first"
    if key in AMBIGUOUS_TITLES:
        return "ambiguous"
    return None


def split_name(name: str) -> tuple[str, str, str]:
    """Split *name* into (title, first name, last name).

    Military, formal and academic titles followed by one word make that word
    the last name; nobility titles make it the first name. With more words
    after any title the next word is the first name and the rest the last
    name. Without a title the last word is the last name and everything
    before it the first name.
    """
    parts = name.split()
    if not parts:
        return "", "", ""
    if len(parts) == 1:
        return "", parts[0], ""

    category = _title_category(parts[0])
    if category is not None:
        title, rest = parts[0], parts[1:]
        if len(rest) == 1:
            if category == "first":
                return title, rest[0], ""
            return title, "", rest[0]
        return title, rest[0], " ".join(rest[1:])

    return "", " ".join(parts[:-1]), parts[-1]


def extract_names(text: str, min_mentions: int = 3) -> list[ExtractedName]:
    """Find probable character names in *text*.

    Args:
        text: Manuscript text.
        min_mentions: Drop names mentioned fewer times than this after
            variants are combined.

    Returns:
        Names sorted by mentions, most mentioned first.
    """
    if not text or not text.strip():
        return []
    counter = filter_common_words(count_mentions(text))
    combined = combine_variants(counter)

    names = []
    for name, (mentions, variants) in combined.items():
        if mentions < min_mentions:
            continue
        title, first_name, last_name = split_name(name)
        names.append(
            ExtractedName(
                name=name,
                mentions=mentions,
                variants=variants,
                first_name=first_name,
                last_name=last_name,
                title=title,
            )
        )
    names.sort(key=lambda n: (-n.mentions, n.name.lower()))
    logger.info(
        "Extracted %d names (min_mentions=%d) from %d characters of text",
        len(names),
        min_mentions,
        len(text),
    )
    return names
