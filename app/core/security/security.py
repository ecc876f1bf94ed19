import bcrypt
from loguru import logger

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    @staticmethod
    def _encode(password: str) -> bytes:
        return password.encode("utf-8")[:BCRYPT_MAX_BYTES]

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Direct bcrypt password verification"""
        try:
            return bcrypt.checkpw(
                self._encode(plain_password),
                hashed_password.encode("utf-8")
            )
        except ValueError as e:
            logger.error(f"Password verification failed: {e}")
            return False

    def get_password_hash(self, password: str) -> str:
        """Direct bcrypt password hashing"""
        return bcrypt.hashpw(
            self._encode(password),
            bcrypt.gensalt(rounds=self.rounds)
        ).decode("utf-8")


# Initialize the hasher at module level
hasher = PasswordHasher()

# Public interface
verify_password = hasher.verify_password
get_password_hash = hasher.get_password_hash
