from enum import Enum


class MissingUserPolicy(str, Enum):
    """What bid history does with a bid whose user no longer exists"""
    fail = "fail"
    placeholder = "placeholder"
