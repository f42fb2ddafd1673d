"""cardloop: spaced-repetition review scheduling and session queues."""

from cardloop.consts import VERSION

__version__ = VERSION
