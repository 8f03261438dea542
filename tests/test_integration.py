"""End-to-end intake sessions against a real store and blob store."""

from unittest.mock import patch

import pytest
import responses

from fixtures import extraction_payload
from statement_intake.extractors import (
    CachingExtractor,
    ExtractionClient,
    ExtractionConnectionError,
)
from statement_intake.review import AutoReviewer, ReviewDecision
from statement_intake.schemas import ItemStatus, PasswordState
from statement_intake.services import (
    CANCELED_BY_USER,
    NO_BANK_MATCHED,
    NO_CONFIRMED_CYCLE,
    PASSWORD_SKIPPED,
)
from statement_intake.state_store import StatementStatus, StatementType
from statement_intake.storage import BlobStoreError

KCB_FILE = "kcb_1234567890.pdf"
EQUITY_FILE = "equity_0987654321.pdf"


class TestSingleMonthIntake:
    """The common case: one statement per file, filed under the target month."""

    def test_uploaded_and_validated(self, make_session, extractor, store, blob_store, reviewer):
        extractor.outcomes[KCB_FILE] = extraction_payload()
        session = make_session()
        index = session.add_file(KCB_FILE, b"%PDF kcb")

        report = session.run()

        item = session.arena[index]
        assert item.status == ItemStatus.UPLOADED
        assert report.uploaded == 1
        assert report.cycles == ["2024-03"]
        assert reviewer.validation_prompts == []

        record = store.find_statement(10, 3, 2024)
        assert item.statement_ids == [record.id]
        assert record.company_id == 1
        assert record.statement_type == StatementType.MONTHLY
        assert record.status == StatementStatus.VALIDATED
        assert record.cycle_id == store.find_cycle("2024-03").id
        assert blob_store.read(record.statement_document["statement_pdf"]) == b"%PDF kcb"
        assert extractor.calls == [{"filename": KCB_FILE, "month": 3, "year": 2024, "password": None}]

    def test_extraction_failure_still_persisted(self, make_session, extractor, store, reviewer):
        extractor.outcomes[KCB_FILE] = ExtractionConnectionError("service down")
        session = make_session()
        index = session.add_file(KCB_FILE, b"%PDF kcb")

        session.run()

        assert session.arena[index].status == ItemStatus.UPLOADED
        record = store.find_statement(10, 3, 2024)
        assert record.status == StatementStatus.PENDING_VALIDATION
        assert record.statement_extractions is None
        assert record.extraction_performed is False
        assert reviewer.validation_prompts == []

    def test_one_record_per_bank_and_month(self, make_session, extractor, store):
        extractor.outcomes[KCB_FILE] = extraction_payload()
        extractor.outcomes["kcb_1234567890_copy.pdf"] = extraction_payload()
        session = make_session()
        first = session.add_file(KCB_FILE, b"first")
        second = session.add_file("kcb_1234567890_copy.pdf", b"second")

        session.run()

        assert len(store.list_statements()) == 1
        assert session.arena[first].statement_ids == session.arena[second].statement_ids

        again = make_session()
        again.add_file(KCB_FILE, b"first")
        again.run()
        assert len(store.list_statements()) == 1

    def test_company_scope(self, make_session, extractor, store):
        extractor.outcomes["KCB_statement.pdf"] = extraction_payload(
            company="Beta Traders", account="5555566666"
        )
        session = make_session(company_id=2)
        index = session.add_file("KCB_statement.pdf", b"beta kcb")

        session.run()

        assert session.arena[index].bank.id == 21
        assert store.find_statement(21, 3, 2024) is not None

    def test_blob_store_error_fails_item(self, make_session, extractor, store):
        extractor.outcomes[KCB_FILE] = extraction_payload()
        extractor.outcomes[EQUITY_FILE] = extraction_payload(bank="Equity", account="0987654321")
        session = make_session()
        kcb = session.add_file(KCB_FILE, b"kcb")
        equity = session.add_file(EQUITY_FILE, b"equity")
        real_put = session.blob_store.put

        def put(key, data):
            if data == b"kcb":
                raise BlobStoreError("disk full")
            return real_put(key, data)

        with patch.object(session.blob_store, "put", side_effect=put):
            report = session.run()

        assert session.arena[kcb].status == ItemStatus.FAILED
        assert session.arena[kcb].error == "disk full"
        assert session.arena[equity].status == ItemStatus.UPLOADED
        assert store.find_statement(10, 3, 2024) is None
        assert (report.uploaded, report.failed) == (1, 1)

    def test_invalid_target_month(self, make_session):
        with pytest.raises(ValueError):
            make_session(month=13)

    def test_empty_run(self, make_session):
        report = make_session().run()
        assert report.items == []
        assert report.cycles == []


class TestPasswords:
    """Protected files inside a batch."""

    def test_stored_password_used_for_extraction(self, make_session, extractor, checker, reviewer):
        checker.passwords[b"locked kcb"] = "4321"
        extractor.outcomes[KCB_FILE] = extraction_payload()
        session = make_session()
        index = session.add_file(KCB_FILE, b"locked kcb")

        session.run()

        item = session.arena[index]
        assert item.status == ItemStatus.UPLOADED
        assert item.password_state == PasswordState.APPLIED
        assert extractor.calls[0]["password"] == "4321"
        assert reviewer.password_requests == []

    def test_skipped_password_fails_only_that_file(self, make_session, extractor, checker, store):
        checker.passwords[b"locked equity"] = "1111"
        extractor.outcomes[KCB_FILE] = extraction_payload()
        extractor.outcomes[EQUITY_FILE] = extraction_payload(bank="Equity", account="0987654321")
        session = make_session()
        kcb = session.add_file(KCB_FILE, b"kcb")
        equity = session.add_file(EQUITY_FILE, b"locked equity")

        report = session.run()

        assert session.arena[kcb].status == ItemStatus.UPLOADED
        assert session.arena[equity].status == ItemStatus.FAILED
        assert session.arena[equity].error == PASSWORD_SKIPPED
        assert [c["filename"] for c in extractor.calls] == [KCB_FILE]
        assert store.find_statement(11, 3, 2024) is None
        assert (report.uploaded, report.failed) == (1, 1)

    def test_resubmit_after_password_known(self, make_session, extractor, checker, reviewer):
        checker.passwords[b"locked equity"] = "1111"
        extractor.outcomes[EQUITY_FILE] = extraction_payload(bank="Equity", account="0987654321")
        session = make_session()
        index = session.add_file(EQUITY_FILE, b"locked equity")
        session.run()
        assert session.arena[index].status == ItemStatus.FAILED

        reviewer.passwords[EQUITY_FILE] = "1111"
        session.resubmit(index)
        report = session.run()

        assert session.arena[index].status == ItemStatus.UPLOADED
        assert session.arena[index].password == "1111"
        assert [i.filename for i in report.items] == [EQUITY_FILE]


class TestReviewDecisions:
    """Manual matching and validation prompts."""

    def test_validation_mismatch_canceled(self, make_session, extractor, store):
        extractor.outcomes[KCB_FILE] = extraction_payload(company="Someone Else")
        reviewer = AutoReviewer(validation_decision=ReviewDecision.CANCEL)
        session = make_session(reviewer=reviewer)
        index = session.add_file(KCB_FILE, b"kcb")

        session.run()

        assert session.arena[index].status == ItemStatus.FAILED
        assert session.arena[index].error == CANCELED_BY_USER
        assert reviewer.validation_prompts == [(KCB_FILE, ["Company name mismatch"])]
        assert store.list_statements() == []

    def test_validation_mismatch_kept(self, make_session, extractor, store, reviewer):
        extractor.outcomes[KCB_FILE] = extraction_payload(currency="USD")
        session = make_session()
        session.add_file(KCB_FILE, b"kcb")

        session.run()

        record = store.find_statement(10, 3, 2024)
        assert record.status == StatementStatus.PENDING_VALIDATION
        assert record.validation_status["mismatches"] == ["Currency mismatch"]
        assert len(reviewer.validation_prompts) == 1

    def test_manual_match(self, make_session, extractor, store):
        extractor.outcomes["scan0001.pdf"] = extraction_payload(bank="Equity", account="0987654321")
        reviewer = AutoReviewer(bank_choices={"scan0001.pdf": 11})
        session = make_session(reviewer=reviewer)
        index = session.add_file("scan0001.pdf", b"scan")
        assert not session.arena[index].is_matched

        session.run()

        item = session.arena[index]
        assert item.status == ItemStatus.UPLOADED
        assert item.match.tier.value == "manual"
        assert store.find_statement(11, 3, 2024) is not None

    def test_unmatched_without_choice_fails(self, make_session, store):
        session = make_session()
        index = session.add_file("scan0001.pdf", b"scan")

        session.run()

        assert session.arena[index].status == ItemStatus.FAILED
        assert session.arena[index].error == NO_BANK_MATCHED
        assert store.list_statements() == []

    def test_manual_match_offers_full_roster_in_company_mode(self, make_session, extractor, store):
        extractor.outcomes["scan_unknown.pdf"] = extraction_payload(
            company="Beta Traders", bank="Stanbic", account="012345678", currency="USD"
        )
        reviewer = AutoReviewer(bank_choices={"scan_unknown.pdf": 20})
        session = make_session(company_id=1, reviewer=reviewer)
        index = session.add_file("scan_unknown.pdf", b"scan")

        session.run()

        item = session.arena[index]
        assert item.status == ItemStatus.UPLOADED
        assert item.bank.id == 20
        assert store.find_statement(20, 3, 2024).company_id == 2

    def test_set_manual_match_overrides_automatic_match(self, make_session, extractor, store):
        extractor.outcomes[KCB_FILE] = extraction_payload(company="Beta Traders", account="5555566666")
        session = make_session()
        index = session.add_file(KCB_FILE, b"kcb")
        assert session.arena[index].bank.id == 10

        session.set_manual_match(index, 21)
        session.run()

        item = session.arena[index]
        assert item.status == ItemStatus.UPLOADED
        assert item.match.tier.value == "manual"
        assert store.find_statement(21, 3, 2024) is not None
        assert store.find_statement(10, 3, 2024) is None

    def test_set_manual_match_then_resubmit_failed_item(self, make_session, extractor, store):
        extractor.outcomes["scan0001.pdf"] = extraction_payload()
        session = make_session()
        index = session.add_file("scan0001.pdf", b"scan")
        session.run()
        assert session.arena[index].error == NO_BANK_MATCHED

        session.set_manual_match(index, 10)
        session.resubmit(index)
        session.run()

        assert session.arena[index].status == ItemStatus.UPLOADED
        assert store.find_statement(10, 3, 2024) is not None

    def test_set_manual_match_rejects_unknown_bank_and_uploaded_item(self, make_session, extractor):
        extractor.outcomes[KCB_FILE] = extraction_payload()
        session = make_session()
        index = session.add_file(KCB_FILE, b"kcb")

        with pytest.raises(KeyError):
            session.set_manual_match(index, 99)

        session.run()
        with pytest.raises(ValueError):
            session.set_manual_match(index, 11)


class TestMultiMonthStatements:
    """Range statements are stored once and replicated into each month."""

    def test_range_replicated(self, make_session, extractor, store):
        extractor.outcomes[KCB_FILE] = extraction_payload(period="January - March 2024")
        session = make_session()
        index = session.add_file(KCB_FILE, b"q1")

        report = session.run()

        assert report.cycles == ["2024-01", "2024-02", "2024-03"]
        parent = store.find_statement(10, 3, 2024)
        assert parent.statement_type == StatementType.RANGE
        children = store.get_children(parent.id)
        assert [c.month_year for c in children] == ["2024-01", "2024-02"]
        assert session.arena[index].statement_ids == [parent.id] + [c.id for c in children]
        assert report.items[0].period == "2024-01..2024-03"

    def test_primary_month_with_two_children(self, make_session, extractor, store):
        extractor.outcomes[KCB_FILE] = extraction_payload(period="Jan 2024 - Mar 2024")
        session = make_session(month=1)
        index = session.add_file(KCB_FILE, b"q1")

        session.run()

        parent = store.find_statement(10, 1, 2024)
        assert parent.statement_type == StatementType.RANGE
        children = store.get_children(parent.id)
        assert [c.month_year for c in children] == ["2024-02", "2024-03"]
        assert {c.parent_statement_id for c in children} == {parent.id}
        assert len(store.list_statements()) == 3
        assert len(store.list_cycles()) == 3
        assert len(session.arena[index].statement_ids) == 3

    def test_deselected_month_skipped(self, make_session, extractor, store):
        extractor.outcomes[KCB_FILE] = extraction_payload(period="January - March 2024")
        session = make_session(reviewer=AutoReviewer(deselected_cycles={"2024-01"}))
        session.add_file(KCB_FILE, b"q1")

        report = session.run()

        assert report.cycles == ["2024-02", "2024-03"]
        assert store.find_statement(10, 1, 2024) is None
        assert store.find_cycle("2024-01") is None
        assert store.find_statement(10, 2, 2024).statement_type == StatementType.RANGE_CHILD

    def test_primary_is_earliest_month_outside_target(self, make_session, extractor, store):
        extractor.outcomes[KCB_FILE] = extraction_payload(period="January - February 2024")
        session = make_session()
        session.add_file(KCB_FILE, b"jan-feb")

        session.run()

        assert store.find_statement(10, 1, 2024).statement_type == StatementType.RANGE
        assert store.find_statement(10, 2, 2024).statement_type == StatementType.RANGE_CHILD
        assert store.find_statement(10, 3, 2024) is None

    def test_all_cycles_deselected(self, make_session, extractor, store):
        extractor.outcomes[KCB_FILE] = extraction_payload()
        session = make_session(reviewer=AutoReviewer(deselected_cycles={"2024-03"}))
        index = session.add_file(KCB_FILE, b"kcb")

        session.run()

        assert session.arena[index].status == ItemStatus.FAILED
        assert session.arena[index].error == NO_CONFIRMED_CYCLE
        assert store.list_cycles() == []


class TestExtractionServiceIntegration:
    """A session talking to the extraction service over mocked HTTP."""

    BASE_URL = "http://extract.local:8500"

    @responses.activate
    def test_session_with_http_extractor(self, make_session, store):
        responses.add(
            responses.POST,
            f"{self.BASE_URL}/api/extract",
            json={"success": True, "extracted_data": extraction_payload()},
        )
        extractor = CachingExtractor(ExtractionClient(self.BASE_URL, max_retries=0))
        session = make_session(extractor=extractor)
        first = session.add_file(KCB_FILE, b"%PDF same")
        second = session.add_file("kcb_1234567890_again.pdf", b"%PDF same")

        session.run()

        assert session.arena[first].status == ItemStatus.UPLOADED
        assert session.arena[second].status == ItemStatus.UPLOADED
        assert len(responses.calls) == 1
        assert extractor.hits == 1

    @responses.activate
    def test_service_requires_password(self, make_session, store):
        responses.add(
            responses.POST,
            f"{self.BASE_URL}/api/extract",
            json={"success": False, "requires_password": True},
        )
        session = make_session(extractor=ExtractionClient(self.BASE_URL, max_retries=0))
        index = session.add_file(KCB_FILE, b"%PDF locked")

        session.run()

        item = session.arena[index]
        assert item.status == ItemStatus.UPLOADED
        assert item.extraction.requires_password
        assert store.find_statement(10, 3, 2024).extraction_performed is False
