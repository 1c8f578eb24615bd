"""readpace - paced reading trainer.

Read text word-by-word, in chunks or by paragraph at a target pace, answer
comprehension questions, earn XP and track reading analytics.
"""

__version__ = "0.1.0"
