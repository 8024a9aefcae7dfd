from __future__ import annotations

from .corpus import CorpusCase, generate_corpus_files, generate_literal_cases

__all__ = ["CorpusCase", "generate_corpus_files", "generate_literal_cases"]
