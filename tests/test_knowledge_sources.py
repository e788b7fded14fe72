"""
Tests for the knowledge file loaders.
"""

from pathlib import Path

import pytest

from draftdesk.core import ValidationException
from draftdesk.drafting.infrastructure import load_seeds, parse_faq_text
from draftdesk.drafting.infrastructure.knowledge_sources import infer_faq_category

SEED_FILE = Path(__file__).parent.parent / "data" / "knowledge_seed.yaml"


class TestFaqParsing:

    def test_pairs_become_question_answer_seeds(self):
        text = (
            "Q: サイズ交換はできますか？\n"
            "A: 到着後7日以内であれば可能です。\n"
            "\n"
            "Q: 支払い方法は？\n"
            "A: クレジットカードと代引きに対応しています。\n"
        )

        seeds = parse_faq_text(text)

        assert len(seeds) == 2
        assert seeds[0].content == "【質問】サイズ交換はできますか？\n【回答】到着後7日以内であれば可能です。"
        assert seeds[0].metadata == {"source": "faq", "category": "sizing", "type": "question_answer"}
        assert seeds[1].metadata["category"] == "payment"

    def test_incomplete_pairs_are_skipped(self):
        assert parse_faq_text("Q: 質問だけ\nA:   \n") == []

    @pytest.mark.parametrize("question,category", [
        ("返品の方法を教えてください", "returns"),
        ("配送にどのくらいかかりますか", "shipping"),
        ("注文をキャンセルしたい", "orders"),
        ("店舗はありますか", "general"),
    ])
    def test_category_inference(self, question, category):
        assert infer_faq_category(question) == category


class TestFileLoaders:

    def test_bundled_seed_file(self):
        seeds = load_seeds(SEED_FILE)

        assert len(seeds) == 10
        assert seeds[1].id == "size-chart"
        assert seeds[1].metadata["category"] == "sizing"
        assert all(seed.content for seed in seeds)

    def test_yaml_list(self, tmp_path):
        path = tmp_path / "docs.yml"
        path.write_text("- content: 営業時間は10時から\n  metadata: {source: info}\n", encoding="utf-8")

        seeds = load_seeds(path)

        assert seeds[0].content == "営業時間は10時から"
        assert seeds[0].metadata == {"source": "info"}
        assert seeds[0].id is None

    def test_yaml_entry_without_content(self, tmp_path):
        path = tmp_path / "docs.yaml"
        path.write_text("documents:\n  - metadata: {source: info}\n", encoding="utf-8")

        with pytest.raises(ValidationException):
            load_seeds(path)

    def test_csv_extra_columns_become_metadata(self, tmp_path):
        path = tmp_path / "docs.csv"
        path.write_text(
            "id,content,source,category\n"
            "chart,サイズ表: A70,size_chart,sizing\n"
            ",,skipped,sizing\n",
            encoding="utf-8"
        )

        seeds = load_seeds(path)

        assert len(seeds) == 1
        assert seeds[0].id == "chart"
        assert seeds[0].metadata == {"source": "size_chart", "category": "sizing"}

    def test_csv_requires_content_column(self, tmp_path):
        path = tmp_path / "docs.csv"
        path.write_text("text,source\nfoo,bar\n", encoding="utf-8")

        with pytest.raises(ValidationException):
            load_seeds(path)

    def test_faq_text_file(self, tmp_path):
        path = tmp_path / "faq.txt"
        path.write_text("Q: 洗濯方法は？\nA: 洗濯ネットに入れてください。\n", encoding="utf-8")

        assert len(load_seeds(path)) == 1

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "docs.json"
        path.write_text("[]", encoding="utf-8")

        with pytest.raises(ValidationException):
            load_seeds(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationException):
            load_seeds(tmp_path / "missing.yaml")
