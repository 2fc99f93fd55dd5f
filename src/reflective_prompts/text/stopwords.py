"""
English stopword list tuned for journal writing.

Besides function words it drops time words, filler verbs and contraction
remnants ("don", "didn") that the normalizer produces when it splits on
apostrophes. Words that carry emotional signal (stress, worry, grateful) must
never appear here.
"""

from typing import FrozenSet

STOPLIST_VERSION = "stopwords-en-journal-2025.1"

STOPWORDS_EN: FrozenSet[str] = frozenset(
    {
        # Articles & conjunctions
        "the", "and", "but", "because", "until", "while", "although", "though",
        "nor", "yet", "either", "neither", "whether", "unless", "since",
        # Prepositions
        "for", "with", "from", "about", "into", "through", "during", "before",
        "after", "above", "below", "between", "under", "over", "out", "off",
        "down", "near", "across", "behind", "onto", "upon", "within", "without",
        "toward", "towards", "against", "among", "around", "via",
        # Be / have / do verbs
        "are", "was", "were", "been", "being", "have", "has", "had", "having",
        "does", "did", "doing", "done",
        # Modal verbs
        "will", "would", "could", "should", "may", "might", "can", "must", "shall",
        # Pronouns
        "you", "she", "him", "her", "them", "they", "his", "its", "our", "their",
        "your", "mine", "yours", "hers", "ours", "theirs", "myself", "yourself",
        "himself", "herself", "itself", "ourselves", "yourselves", "themselves",
        # Demonstratives
        "this", "that", "these", "those",
        # Quantifiers
        "all", "each", "every", "some", "any", "few", "many", "much", "more",
        "most", "several", "none", "both", "less", "least", "enough",
        # Wh-words
        "what", "when", "where", "who", "whom", "whose", "which", "why", "how",
        # Adverbs (fillers)
        "not", "only", "just", "very", "too", "also", "than", "such", "really",
        "quite", "rather", "even", "still", "already", "never", "always", "often",
        "sometimes", "usually", "generally", "especially", "particularly",
        "maybe", "perhaps", "pretty", "actually", "basically", "probably",
        "here", "there", "again", "ever", "almost",
        # Time words
        "today", "yesterday", "tomorrow", "now", "then", "ago", "later", "soon",
        "day", "days", "week", "weeks", "month", "months", "year", "years",
        "morning", "afternoon", "evening", "night", "tonight",
        # Common verbs
        "feel", "felt", "feeling", "seem", "seemed", "look", "looked", "got",
        "get", "went", "goes", "going", "made", "make", "said", "say", "told",
        "tell", "came", "come", "became", "become", "took", "take", "gave",
        "give", "found", "find", "thought", "think", "knew", "know", "saw", "see",
        "want", "wanted", "let", "put", "keep", "kept",
        # Other common words
        "own", "same", "other", "another", "thing", "things", "way", "ways",
        "place", "places", "time", "times", "back", "new", "first", "last",
        "long", "good", "great", "little", "old", "right", "big", "high",
        "different", "small", "large", "next", "early", "young", "important",
        "public", "bad", "able", "like", "well", "one", "two", "three",
        # Fillers
        "kind", "sort", "type", "lot", "lots", "bit", "piece", "something",
        "anything", "nothing", "everything", "someone", "anyone", "everyone",
        "nobody", "somebody", "anybody", "everybody", "stuff",
        # Contraction remnants after apostrophe splitting
        "don", "didn", "doesn", "isn", "wasn", "weren", "aren", "couldn",
        "wouldn", "shouldn", "won", "haven", "hasn", "hadn", "ive", "youre",
        "dont", "cant", "wont", "im",
    }
)
