"""
Tests for the command-line interface.
"""

import pytest

from crm_rag import cli


class TestParser:

    def setup_method(self):
        self.parser = cli.build_parser()

    def test_ingest(self):
        args = self.parser.parse_args(["ingest", "data/customers.json", "--type", "customer"])
        assert args.command == "ingest"
        assert args.path == "data/customers.json"
        assert args.data_type == "customer"

    def test_ingest_requires_known_type(self):
        with pytest.raises(SystemExit):
            self.parser.parse_args(["ingest", "data.json", "--type", "invoice"])

    def test_query_defaults(self):
        args = self.parser.parse_args(["query", "VIP customers"])
        assert args.text == "VIP customers"
        assert args.top_k == 5
        assert args.min_score == 0.5

    def test_query_options(self):
        args = self.parser.parse_args(["query", "VIP", "--top-k", "10", "--min-score", "0.2"])
        assert args.top_k == 10
        assert args.min_score == 0.2

    def test_reset_confirmation_flag(self):
        assert self.parser.parse_args(["reset"]).yes is False
        assert self.parser.parse_args(["reset", "--yes"]).yes is True


class TestCommands:

    def test_reset_refused_without_confirmation(self):
        assert cli.reset(settings=None, confirmed=False) is False
