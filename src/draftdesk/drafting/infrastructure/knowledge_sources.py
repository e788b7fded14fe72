"""
Knowledge Sources
=================

Loaders that turn curated files into knowledge seeds for ingestion.

Supported formats:
- YAML: a list of {id?, content, metadata}
- CSV: columns content,source,category,type (extra columns become metadata)
- FAQ text: "Q: ...\\nA: ..." pairs separated by blank lines
"""

import csv
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union
import re

import yaml

from draftdesk.core import ValidationException

Scalar = Union[str, int, float, bool, None]

# Checked in order; first keyword hit wins
FAQ_CATEGORY_KEYWORDS = [
    ("sizing", ("サイズ",)),
    ("returns", ("返品", "交換")),
    ("payment", ("支払い", "クレジット", "決済")),
    ("shipping", ("配送", "届き")),
    ("orders", ("注文",)),
]

_FAQ_PAIR = re.compile(r"Q:\s*(.*?)\nA:\s*(.*?)(?=\n\s*\nQ:|\nQ:|\Z)", re.DOTALL)


@dataclass
class KnowledgeSeed:
    """Document content awaiting embedding."""
    content: str
    metadata: Dict[str, Scalar] = field(default_factory=dict)
    id: Optional[str] = None


def infer_faq_category(question: str) -> str:
    for category, keywords in FAQ_CATEGORY_KEYWORDS:
        if any(keyword in question for keyword in keywords):
            return category
    return "general"


def parse_faq_text(text: str) -> List[KnowledgeSeed]:
    """Split FAQ text into question/answer seeds."""
    seeds = []
    for match in _FAQ_PAIR.finditer(text.replace("\r\n", "\n")):
        question = match.group(1).strip()
        answer = match.group(2).strip()
        if not question or not answer:
            continue
        seeds.append(KnowledgeSeed(
            content=f"【質問】{question}\n【回答】{answer}",
            metadata={
                "source": "faq",
                "category": infer_faq_category(question),
                "type": "question_answer"
            }
        ))
    return seeds


def load_yaml_seeds(path: Path) -> List[KnowledgeSeed]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or []

    if isinstance(data, dict):
        data = data.get("documents", [])
    if not isinstance(data, list):
        raise ValidationException(f"Expected a list of documents in {path}")

    seeds = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict) or not str(entry.get("content", "")).strip():
            raise ValidationException(
                f"Document #{index} in {path} has no content",
                details={"path": str(path), "index": index}
            )
        seeds.append(KnowledgeSeed(
            content=str(entry["content"]).strip(),
            metadata=dict(entry.get("metadata") or {}),
            id=str(entry["id"]) if entry.get("id") is not None else None
        ))
    return seeds


def load_csv_seeds(path: Path) -> List[KnowledgeSeed]:
    seeds = []
    with open(path, "r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        if not reader.fieldnames or "content" not in reader.fieldnames:
            raise ValidationException(f"CSV {path} must have a 'content' column")
        for row in reader:
            content = (row.pop("content") or "").strip()
            if not content:
                continue
            doc_id = row.pop("id", None) or None
            metadata = {key: value for key, value in row.items() if key and value}
            seeds.append(KnowledgeSeed(content=content, metadata=metadata, id=doc_id))
    return seeds


def load_seeds(path: Union[str, Path]) -> List[KnowledgeSeed]:
    """Load seeds from a YAML, CSV or FAQ text file, chosen by extension."""
    path = Path(path)
    if not path.exists():
        raise ValidationException(f"Knowledge source not found: {path}")

    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return load_yaml_seeds(path)
    if suffix == ".csv":
        return load_csv_seeds(path)
    if suffix == ".txt":
        return parse_faq_text(path.read_text(encoding="utf-8"))
    raise ValidationException(f"Unsupported knowledge source format: {suffix}")
