"""
Alea PRNG for deterministic cosmetic randomness.

Johannes Baagøe's Alea generator: seeded from a string, reproducible across
runs and platforms. Only river naming draws from it; nothing on the drainage
path is random.
"""

_TWO_POW_32 = 0x100000000
_TWO_POW_NEG_32 = 2.3283064365386963e-10


class _Mash:
    """Alea's string hashing step, producing floats in [0, 1)."""

    def __init__(self):
        self.n = 0xEFC8249D

    def __call__(self, data) -> float:
        for char in str(data):
            self.n += ord(char)
            h = 0.02519603282416938 * self.n
            self.n = int(h) & 0xFFFFFFFF
            h -= self.n
            h *= self.n
            self.n = int(h) & 0xFFFFFFFF
            h -= self.n
            self.n += h * _TWO_POW_32
        return (int(self.n) & 0xFFFFFFFF) * _TWO_POW_NEG_32


class AleaPRNG:
    """Seeded Alea generator."""

    def __init__(self, seed="default"):
        mash = _Mash()
        self.s0 = mash(" ")
        self.s1 = mash(" ")
        self.s2 = mash(" ")
        self.c = 1

        self.s0 = self._mix(self.s0, mash(seed))
        self.s1 = self._mix(self.s1, mash(seed))
        self.s2 = self._mix(self.s2, mash(seed))

    @staticmethod
    def _mix(state: float, value: float) -> float:
        state -= value
        return state + 1 if state < 0 else state

    def random(self) -> float:
        """Generate next random number in [0, 1)."""
        t = 2091639 * self.s0 + self.c * _TWO_POW_NEG_32
        self.s0 = self.s1
        self.s1 = self.s2
        self.c = int(t)
        self.s2 = t - self.c
        return self.s2

    def randint(self, n: int) -> int:
        """Random integer in [0, n)."""
        return int(self.random() * n)

    def choice(self, seq):
        """Choose a random element from a non-empty sequence."""
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[self.randint(len(seq))]
