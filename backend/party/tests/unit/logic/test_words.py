import random

from party.logic.enums import Language
from party.logic.words import DEFAULT_WORD_COUNT, WORD_POOLS, RandomWordSource


class TestRandomWordSource:
    def test_default_count(self):
        words = RandomWordSource(random.Random(1)).word_list(Language.EN)

        assert len(words) == DEFAULT_WORD_COUNT

    def test_words_come_from_language_pool(self):
        source = RandomWordSource(random.Random(1))

        assert set(source.word_list(Language.TR, 50)) <= set(WORD_POOLS[Language.TR])
        assert set(source.word_list(Language.EN, 50)) <= set(WORD_POOLS[Language.EN])

    def test_seeded_sources_agree(self):
        first = RandomWordSource(random.Random(9)).word_list(Language.EN, 20)
        second = RandomWordSource(random.Random(9)).word_list(Language.EN, 20)

        assert first == second
