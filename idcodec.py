"""Base62 codec for the short public image IDs."""
import config

DEFAULT_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
# Fixed permutation of DEFAULT_ALPHABET so sequential IDs don't look sequential.
SHUFFLED_ALPHABET = "krKL5Z0Uz9tiXh3lNsq1MFVmPcdIeoyB28vWGupQS7H6wOYDnJbfEgTxRAa4Cj"
BASE = 62


class Encoder:
    def __init__(self, alphabet: str):
        if len(alphabet) != BASE or len(set(alphabet)) != BASE:
            raise ValueError("Base62 alphabet must have 62 distinct characters")
        self.alphabet = alphabet
        self._index = {c: i for i, c in enumerate(alphabet)}

    def encode(self, num: int) -> str:
        if num < 0:
            raise ValueError("Cannot encode a negative number")
        if num == 0:
            return self.alphabet[0]

        digits = []
        while num > 0:
            num, rem = divmod(num, BASE)
            digits.append(self.alphabet[rem])
        return "".join(reversed(digits))

    def decode(self, text: str) -> int:
        if not text:
            raise ValueError("Cannot decode an empty string")
        val = 0
        for c in text:
            try:
                val = val * BASE + self._index[c]
            except KeyError:
                raise ValueError(f"Invalid base62 character: {c!r}") from None
        return val


b62 = Encoder(SHUFFLED_ALPHABET)


def public_id(row_id: int) -> str:
    """Short ID used in URLs for a database row ID."""
    return b62.encode(row_id + config.ID_OFFSET)


def row_id(public: str) -> int:
    """Database row ID for a short public ID. Raises ValueError if malformed."""
    return b62.decode(public) - config.ID_OFFSET
