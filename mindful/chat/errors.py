from types import MappingProxyType

from .types import ErrorKind

FALLBACK_MESSAGES = MappingProxyType({
    ErrorKind.SAFETY: "I appreciate your openness with me. That's a topic I think might be better addressed in a different way. I'm here to support your wellbeing, so maybe we could explore what's behind that question? I'm curious about what's on your mind today.",
    ErrorKind.DEFAULT: "I seem to be having a moment here - my thoughts got a bit jumbled. Would you mind sharing that again, maybe in a slightly different way? I really want to understand what you're going through.",
    ErrorKind.NETWORK: "It looks like we're having trouble staying connected right now. Technology, right? Would you mind giving it another try in a minute? I'm looking forward to continuing our conversation.",
    ErrorKind.SERVER: "My systems are feeling a bit overwhelmed at the moment - kind of like how we all get sometimes. Could we pick this up again in a little while? I'll be here when you're ready.",
    ErrorKind.AUTHENTICATION: "I'm having some trouble accessing my full capabilities right now. It's a bit like being locked out of your house - frustrating! Our team is looking into this, and I appreciate your patience.",
})

CANCELLED_MESSAGE = "No problem, I've stopped there. Whenever you're ready, I'm here to keep talking."

# Checked in order, first hit wins. Auth must come first: 401 bodies often
# also say "content" or "server".
CLASSIFY_RULES = (
    (ErrorKind.AUTHENTICATION, ("401", "403", "unauthorized", "invalid credentials", "api key", "permission denied")),
    (ErrorKind.SAFETY, ("content", "safety", "blocked")),
    (ErrorKind.NETWORK, ("network", "connection", "timed out", "timeout", "refused")),
    (ErrorKind.SERVER, ("server", "500", "502", "503", "504", "unavailable")),
)


def classify(error: BaseException | str | None) -> ErrorKind:
    text = str(error or "").lower()
    if isinstance(error, TimeoutError) and not text:
        return ErrorKind.NETWORK
    for kind, needles in CLASSIFY_RULES:
        if any(n in text for n in needles):
            return kind
    return ErrorKind.DEFAULT


def fallback_message(kind: ErrorKind) -> str:
    return FALLBACK_MESSAGES[kind]
