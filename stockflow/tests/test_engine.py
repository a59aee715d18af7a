"""
Tests for draft creation and finalization of deliveries and transfers.
"""

import logging

import pytest
from django.db.models import Sum

from stockflow import MovementError
from stockflow.exceptions import (
    AlreadyFinalizedError,
    InsufficientStockError,
    InvalidQuantityError,
    NotFoundError,
    ValidationError,
)
from stockflow.models import DocumentKind, DocumentStatus, Move, MovementDocument, MovementLine


pytestmark = pytest.mark.django_db


class TestCreateDelivery:
    """Tests for create_delivery()."""

    def test_creates_draft_without_touching_stock(self, stocked, product, main, user):
        doc = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 10},
        ], user=user)

        assert doc.kind == DocumentKind.DELIVERY
        assert doc.status == DocumentStatus.DRAFT
        assert doc.customer == 'ACME'
        assert doc.created_by == user
        assert stocked.available(product, main) == 50

        line = doc.lines.get()
        assert line.line_number == 1
        assert line.requested_quantity == 10
        assert line.actual_quantity is None
        assert line.source_warehouse == main

    def test_accepts_ids(self, stocked, product, main):
        doc = stocked.create_delivery('ACME', [
            {'product': product.pk, 'warehouse': main.pk, 'quantity': 5},
        ])

        assert doc.lines.get().product == product

    def test_lines_numbered_in_order(self, stocked, product, other_product, main):
        doc = stocked.create_delivery('ACME', [
            {'product': other_product, 'warehouse': main, 'quantity': 1},
            {'product': product, 'warehouse': main, 'quantity': 2},
        ])

        assert [(l.line_number, l.product_id) for l in doc.lines.all()] == [
            (1, other_product.pk),
            (2, product.pk),
        ]

    def test_same_product_from_two_warehouses(self, stocked, product, main, annex):
        """A delivery line picks its own warehouse."""
        stocked.receive(5, product, annex)

        doc = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 10},
            {'product': product, 'warehouse': annex, 'quantity': 5},
        ])

        assert doc.lines.count() == 2

    def test_customer_is_stripped(self, stocked, product, main):
        doc = stocked.create_delivery('  ACME  ', [
            {'product': product, 'warehouse': main, 'quantity': 1},
        ])

        assert doc.customer == 'ACME'

    @pytest.mark.parametrize('customer', ['', '   ', None])
    def test_customer_required(self, stocked, product, main, customer):
        with pytest.raises(ValidationError) as exc:
            stocked.create_delivery(customer, [
                {'product': product, 'warehouse': main, 'quantity': 1},
            ])

        assert exc.value.data['field'] == 'customer'
        assert not MovementDocument.objects.exists()

    def test_lines_required(self, stocked):
        with pytest.raises(ValidationError) as exc:
            stocked.create_delivery('ACME', [])

        assert exc.value.data['field'] == 'lines'

    def test_line_warehouse_required(self, stocked, product):
        with pytest.raises(ValidationError) as exc:
            stocked.create_delivery('ACME', [{'product': product, 'quantity': 1}])

        assert exc.value.data == {'field': 'warehouse', 'line': 1}

    def test_duplicate_pair_rejected(self, stocked, product, main):
        with pytest.raises(ValidationError) as exc:
            stocked.create_delivery('ACME', [
                {'product': product, 'warehouse': main, 'quantity': 1},
                {'product': product, 'warehouse': main, 'quantity': 2},
            ])

        assert exc.value.data['line'] == 2
        assert exc.value.data['duplicate_of'] == 1
        assert not MovementLine.objects.exists()

    @pytest.mark.parametrize('quantity', [0, -3, 1.5, '4', None, True])
    def test_quantity_must_be_positive_integer(self, stocked, product, main, quantity):
        with pytest.raises(InvalidQuantityError) as exc:
            stocked.create_delivery('ACME', [
                {'product': product, 'warehouse': main, 'quantity': quantity},
            ])

        assert exc.value.code == 'INVALID_QUANTITY'
        assert exc.value.data['line'] == 1

    def test_unknown_product(self, stocked, main):
        with pytest.raises(NotFoundError) as exc:
            stocked.create_delivery('ACME', [
                {'product': 404, 'warehouse': main, 'quantity': 1},
            ])

        assert exc.value.data == {'entity': 'product', 'id': 404}

    def test_more_than_stock_rejected_and_nothing_persisted(self, stocked, product, main):
        """ACME asks for 60 of the 50 held in main."""
        with pytest.raises(InsufficientStockError) as exc:
            stocked.create_delivery('ACME', [
                {'product': product, 'warehouse': main, 'quantity': 60},
            ])

        assert exc.value.available == 50
        assert exc.value.requested == 60
        assert exc.value.data['line'] == 1
        assert not MovementDocument.objects.exists()
        assert stocked.available(product, main) == 50

    def test_create_check_can_be_disabled(self, settings, stocked, product, main):
        settings.STOCKFLOW = {'CHECK_AVAILABILITY_ON_CREATE': False}

        doc = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 60},
        ])

        assert doc.is_draft

    def test_unknown_kind(self, stocked, product, main):
        with pytest.raises(ValidationError) as exc:
            stocked.create('return', {'customer': 'ACME'}, [
                {'product': product, 'warehouse': main, 'quantity': 1},
            ])

        assert exc.value.data['field'] == 'kind'


class TestCreateTransfer:
    """Tests for create_transfer()."""

    def test_lines_take_source_warehouse(self, stocked, product, main, annex):
        doc = stocked.create_transfer(main, annex, [{'product': product, 'quantity': 20}])

        assert doc.kind == DocumentKind.TRANSFER
        assert doc.source_warehouse == main
        assert doc.destination_warehouse == annex
        assert doc.customer == ''
        assert doc.lines.get().source_warehouse == main

    def test_same_warehouse_rejected(self, stocked, product, main):
        with pytest.raises(ValidationError) as exc:
            stocked.create_transfer(main, main, [{'product': product, 'quantity': 1}])

        assert exc.value.data['field'] == 'destination_warehouse'
        assert not MovementDocument.objects.exists()

    @pytest.mark.parametrize('missing', ['source', 'destination'])
    def test_warehouses_required(self, stocked, product, main, missing):
        source, destination = (None, main) if missing == 'source' else (main, None)

        with pytest.raises(ValidationError) as exc:
            stocked.create_transfer(source, destination, [{'product': product, 'quantity': 1}])

        assert exc.value.data['field'] == f'{missing}_warehouse'

    def test_unknown_destination(self, stocked, product, main):
        with pytest.raises(NotFoundError):
            stocked.create_transfer(main, 999, [{'product': product, 'quantity': 1}])

    def test_line_warehouse_must_match_source(self, stocked, product, main, annex, outlet):
        with pytest.raises(ValidationError) as exc:
            stocked.create_transfer(main, annex, [
                {'product': product, 'warehouse': outlet, 'quantity': 1},
            ])

        assert exc.value.data['warehouse'] == outlet.pk

    def test_duplicate_product_rejected(self, stocked, product, main, annex):
        with pytest.raises(ValidationError) as exc:
            stocked.create_transfer(main, annex, [
                {'product': product, 'quantity': 1},
                {'product': product, 'quantity': 1},
            ])

        assert exc.value.data['duplicate_of'] == 1


class TestFinalizeTransfer:
    """Tests for finalize_transfer()."""

    def test_transfer_moves_stock(self, stocked, product, main, annex, user):
        """50 in main, transfer 20 to annex: 30 stay, 20 arrive."""
        doc = stocked.create_transfer(main, annex, [{'product': product, 'quantity': 20}])

        done = stocked.finalize_transfer(doc.pk, user=user)

        assert stocked.available(product, main) == 30
        assert stocked.available(product, annex) == 20
        assert done.status == DocumentStatus.FINALIZED
        assert done.status_label == 'Completed'
        assert done.finalized_by == user
        assert done.finalized_at is not None
        assert done.lines.get().actual_quantity == 20

    def test_draft_then_finalize_thirty(self, stocked, product, main, annex):
        doc = stocked.create_transfer(main.pk, annex.pk, [{'product': product.pk, 'quantity': 30}])

        assert doc.is_draft
        assert stocked.stock_by_warehouse(product) == {main.pk: 50}

        stocked.finalize_transfer(doc.pk, {1: 30})

        assert stocked.stock_by_warehouse(product) == {main.pk: 20, annex.pk: 30}
        assert stocked.get(doc.pk).is_finalized

    def test_transfer_conserves_total(self, stocked, product, other_product, main, annex):
        doc = stocked.create_transfer(main, annex, [
            {'product': product, 'quantity': 20},
            {'product': other_product, 'quantity': 5},
        ])

        stocked.finalize_transfer(doc.pk, {1: 15, 2: 5})

        assert Move.objects.filter(document=doc).aggregate(t=Sum('delta'))['t'] == 0
        assert stocked.stock_by_warehouse(product) == {main.pk: 35, annex.pk: 15}
        assert stocked.stock_by_warehouse(other_product) == {main.pk: 15, annex.pk: 5}

    def test_moves_reference_document_and_line(self, stocked, product, main, annex):
        doc = stocked.create_transfer(main, annex, [{'product': product, 'quantity': 20}])
        stocked.finalize_transfer(doc.pk)

        moves = Move.objects.filter(document=doc).order_by('delta')

        assert [(m.entry.warehouse_id, m.delta) for m in moves] == [(main.pk, -20), (annex.pk, 20)]
        assert {m.reason for m in moves} == {f'{doc.reference} line 1'}


class TestFinalizeDelivery:
    """Tests for finalize_delivery()."""

    def test_delivery_decrements_source_only(self, stocked, product, main, annex):
        doc = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 10},
        ])

        done = stocked.finalize_delivery(doc.pk)

        assert stocked.available(product, main) == 40
        assert stocked.available(product, annex) == 0
        assert done.status_label == 'Validated'
        assert Move.objects.filter(document=doc).get().delta == -10

    def test_partial_fulfilment(self, stocked, product, main):
        doc = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 10},
        ])

        done = stocked.finalize_delivery(doc.pk, {1: 8})

        line = done.lines.get()
        assert line.actual_quantity == 8
        assert line.shortfall == 2
        assert done.is_finalized
        assert stocked.available(product, main) == 42

    def test_missing_lines_move_nothing(self, stocked, product, other_product, main):
        doc = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 10},
            {'product': other_product, 'warehouse': main, 'quantity': 10},
        ])

        done = stocked.finalize_delivery(doc.pk, {1: 10})

        assert [l.actual_quantity for l in done.lines.all()] == [10, 0]
        assert stocked.available(other_product, main) == 20
        assert Move.objects.filter(document=doc).count() == 1

    def test_zero_actuals_still_finalize(self, stocked, product, main):
        doc = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 10},
        ])

        done = stocked.finalize_delivery(doc.pk, {})

        assert done.is_finalized
        assert not Move.objects.filter(document=doc).exists()

    def test_stale_draft_rechecked(self, stocked, product, main):
        """Drafts reserve nothing: stock may drop between create and finalize."""
        first = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 40},
        ])
        second = stocked.create_delivery('Globex', [
            {'product': product, 'warehouse': main, 'quantity': 20},
        ])
        stocked.finalize_delivery(second.pk)

        with pytest.raises(InsufficientStockError) as exc:
            stocked.finalize_delivery(first.pk)

        assert exc.value.available == 30
        assert exc.value.requested == 40
        assert exc.value.data['line'] == 1
        assert stocked.get(first.pk).is_draft
        assert stocked.get(first.pk).lines.get().actual_quantity is None
        assert stocked.available(product, main) == 30

    def test_failure_leaves_every_line_untouched(self, settings, stocked, product, other_product, main):
        """One short line rejects the whole document."""
        settings.STOCKFLOW = {'CHECK_AVAILABILITY_ON_CREATE': False}
        doc = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 10},
            {'product': other_product, 'warehouse': main, 'quantity': 25},
        ])

        with pytest.raises(InsufficientStockError) as exc:
            stocked.finalize_delivery(doc.pk)

        assert exc.value.data['line'] == 2
        assert stocked.available(product, main) == 50
        assert stocked.available(other_product, main) == 20
        assert not Move.objects.filter(document=doc).exists()


class TestFinalizeRules:
    """Exactly-once and input validation of finalize()."""

    def test_second_finalize_rejected(self, stocked, product, main):
        doc = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 10},
        ])
        stocked.finalize_delivery(doc.pk)

        with pytest.raises(AlreadyFinalizedError) as exc:
            stocked.finalize_delivery(doc.pk)

        assert exc.value.code == 'ALREADY_FINALIZED'
        assert exc.value.data['reference'] == doc.reference
        assert stocked.available(product, main) == 40
        assert Move.objects.filter(document=doc).count() == 1

    def test_unknown_line(self, stocked, product, main):
        doc = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 10},
        ])

        with pytest.raises(ValidationError) as exc:
            stocked.finalize_delivery(doc.pk, {1: 5, 3: 1})

        assert exc.value.code == 'VALIDATION'
        assert exc.value.data['lines'] == [3]
        assert stocked.get(doc.pk).is_draft

    @pytest.mark.parametrize('actual', [11, -1, 2.5, '5', True])
    def test_actual_outside_requested(self, stocked, product, main, actual):
        doc = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 10},
        ])

        with pytest.raises(InvalidQuantityError) as exc:
            stocked.finalize_delivery(doc.pk, {1: actual})

        assert exc.value.data['line'] == 1
        assert stocked.available(product, main) == 50
        assert stocked.get(doc.pk).is_draft

    def test_unknown_document(self, stocked):
        with pytest.raises(NotFoundError) as exc:
            stocked.finalize(12345)

        assert exc.value.data['id'] == 12345

    def test_wrong_kind_is_not_found(self, stocked, product, main):
        doc = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 10},
        ])

        with pytest.raises(NotFoundError):
            stocked.finalize_transfer(doc.pk)

        assert stocked.get(doc.pk).is_draft

    def test_errors_serialize(self, stocked, product, main):
        with pytest.raises(MovementError) as exc:
            stocked.create_delivery('ACME', [
                {'product': product, 'warehouse': main, 'quantity': 60},
            ])

        payload = exc.value.as_dict()
        assert payload['code'] == 'INSUFFICIENT_STOCK'
        assert payload['data']['available'] == 50
        assert payload['data']['product'] == product.pk

    def test_finalize_is_logged(self, caplog, stocked, product, main):
        doc = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 10},
        ])

        with caplog.at_level(logging.INFO, logger='stockflow'):
            stocked.finalize_delivery(doc.pk, {1: 4})

        record = next(r for r in caplog.records if r.getMessage() == 'movement.finalize')
        assert record.reference == doc.reference
        assert record.moved == 4
        assert record.requested == 10

    def test_rejection_is_logged(self, caplog, stocked, product, main):
        doc = stocked.create_delivery('ACME', [
            {'product': product, 'warehouse': main, 'quantity': 10},
        ])
        stocked.finalize_delivery(doc.pk)

        with caplog.at_level(logging.INFO, logger='stockflow'):
            with pytest.raises(AlreadyFinalizedError):
                stocked.finalize_delivery(doc.pk)

        record = next(r for r in caplog.records if r.getMessage() == 'movement.finalize.rejected')
        assert record.code == 'ALREADY_FINALIZED'
