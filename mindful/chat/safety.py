EMERGENCY_KEYWORDS = (
    # suicide
    "suicide", "kill myself", "end my life", "want to die", "die soon",
    "better off dead", "no reason to live", "can't go on", "going to end it",
    "taking my life", "final goodbye", "last message", "won't be here tomorrow",
    # self-harm
    "self-harm", "hurting myself", "cutting myself", "burning myself",
    "harming myself", "punishing myself", "inflicting pain", "making myself bleed",
    # medical emergency
    "bleeding heavily", "severe pain", "overdosed", "took too many pills",
    "can't breathe", "having a heart attack", "stroke", "passing out",
    # urgent help
    "emergency", "urgent", "help me now", "need help immediately",
    "crisis", "desperate", "critical", "life or death",
    # emotional crisis
    "can't take it anymore", "at the end of my rope", "giving up",
    "hate myself", "nobody cares", "completely hopeless", "unbearable pain",
    "no way out", "trapped", "never ending suffering", "tortured",
    # harm to others
    "want to hurt someone", "going to hurt", "harm them", "make them pay",
    "revenge", "make them suffer", "violent thoughts", "losing control",
)


def scan(text: str | None) -> bool:
    # substring match only, no tokenisation
    if not text:
        return False
    t = text.lower().replace("’", "'")
    return any(k in t for k in EMERGENCY_KEYWORDS)
