"""Word lists for typing rounds.

Word content is an external concern; ``WordSource`` is the seam. The built-in
pools only exist so a room can run without a content provider.
"""

from __future__ import annotations

import random
from typing import Protocol

from party.logic.enums import Language

DEFAULT_WORD_COUNT = 300

WORD_POOLS: dict[Language, tuple[str, ...]] = {
    Language.EN: (
        "the", "be", "of", "and", "a", "to", "in", "he", "have", "it", "that", "for", "they", "with",
        "as", "not", "on", "she", "at", "by", "this", "we", "you", "do", "but", "from", "or", "which",
        "one", "would", "all", "will", "there", "say", "who", "make", "when", "can", "more", "if", "no",
        "man", "out", "other", "so", "what", "time", "up", "go", "about", "than", "into", "could",
        "state", "only", "new", "year", "some", "take", "come", "these", "know", "see", "use", "get",
        "like", "then", "first", "any", "work", "now", "may", "such", "give", "over", "think", "most",
        "even", "find", "day", "also", "after", "way", "many", "must", "look", "before", "great",
        "back", "through", "long", "where", "much", "should", "well", "people", "down", "own", "just",
        "because", "good", "each", "those", "feel", "seem", "how", "high", "too", "place", "little",
        "world", "very", "still", "nation", "hand", "old", "life", "tell", "write", "become", "here",
        "show", "house", "both", "between", "need", "mean", "call", "develop", "under", "last",
        "right", "move", "thing", "general", "school", "never", "same", "another", "begin", "while",
        "number", "part", "turn", "real", "leave", "might", "want", "point", "form", "off", "child",
        "few", "small", "since", "against", "ask", "late", "home", "interest", "large", "person",
        "end", "open", "public", "follow", "during", "present", "without", "again", "hold", "govern",
        "around", "possible", "head", "consider", "word", "program", "problem", "however", "lead",
        "system", "set", "order", "eye", "plan", "run", "keep", "face", "fact", "group", "play",
        "stand", "increase", "early", "course", "change", "help", "line",
    ),  # fmt: skip
    Language.TR: (
        "ve", "bir", "bu", "da", "de", "için", "çok", "o", "en", "ne", "kadar", "olan", "ile", "var",
        "gibi", "sonra", "daha", "ama", "diye", "büyük", "yeni", "kendi", "her", "zaman", "yer", "yıl",
        "gün", "sadece", "veya", "tüm", "şimdi", "yok", "geldi", "dedi", "iş", "ki", "son", "iyi",
        "oldu", "bunu", "şey", "ben", "zaten", "insan", "devlet", "biz", "iki", "fakat", "önce", "bile",
        "tarafından", "mi", "nasıl", "başka", "böyle", "yüzden", "aynı", "hiç", "biri", "diğer",
        "çünkü", "hemen", "söyle", "yapma", "olma", "bana", "seni", "bizi", "onlar", "bütün", "olmak",
        "taraf", "hayat", "ancak", "işte", "yine", "göre", "tek", "dünya", "durum", "uzun", "gelmek",
        "el", "yol", "çocuk", "etmek", "söz", "onun", "yoksa", "konu", "hangi", "olur", "bugün",
        "adam", "önemli", "ara", "üzerine", "ses", "hep", "kabul", "yüz", "geri", "neden", "kadın",
        "üzerinde", "ülke", "almak", "yan", "kullanmak", "hak", "dışında", "şekil", "baba", "vermek",
        "ilk", "göz", "gerek", "genç", "kitap", "dönem", "arkadaş", "ürün", "aile", "sistem", "su",
        "birlikte", "saat", "gerçek", "kan", "sabah", "olay", "bölüm", "yazmak", "dönmek", "akşam",
        "hafta", "ay", "gece", "zor", "bulunmak", "ad", "sayı", "grup", "oda", "kısa", "an", "alt",
        "üst", "sorun", "kişi", "sıra",
    ),  # fmt: skip
}


class WordSource(Protocol):
    """Provider of the shared word list for a typing round."""

    def word_list(self, lang: Language, count: int) -> list[str]: ...


class RandomWordSource:
    """Sample words with replacement from the built-in pools."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()  # noqa: S311

    def word_list(self, lang: Language, count: int = DEFAULT_WORD_COUNT) -> list[str]:
        pool = WORD_POOLS[lang]
        return [self._rng.choice(pool) for _ in range(count)]
