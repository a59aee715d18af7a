"""
Movement engine — draft creation and finalization of deliveries and transfers.

One state machine serves both kinds. What differs per kind lives in a
KindRule: which metadata is required, where each line takes stock from,
and which ledger deltas a finalized line produces.

Finalize is the only operation that changes stock. Under the stock locks of
every pair it touches, and inside one transaction, it:
1. re-reads the document and refuses anything but a draft
2. re-checks availability with fresh reads
3. applies the ledger deltas
4. writes the actual quantities and flips the status
Any error rolls back all four.
"""

import logging
from collections import defaultdict
from collections.abc import Mapping

from django.db import OperationalError, transaction

from stockflow.adapters.directory import get_directory
from stockflow.conf import stockflow_settings
from stockflow.exceptions import (
    AlreadyFinalizedError,
    BusyError,
    InvalidQuantityError,
    MovementError,
    ValidationError,
)
from stockflow.models.document import MovementDocument, MovementLine
from stockflow.models.enums import DocumentKind
from stockflow.protocols.directory import CatalogDirectory
from stockflow.services.availability import Availability
from stockflow.services.documents import DocumentStore, parse_kind
from stockflow.services.ledger import StockLedger, _pk
from stockflow.services.locks import PairLocks, pair_locks

logger = logging.getLogger('stockflow')


def _is_quantity(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _resolve(getter, value, field: str, line: int | None = None):
    if value is None or value == '':
        raise ValidationError(
            f"{field.replace('_', ' ').capitalize()} is required"
            + (f" (line {line})" if line is not None else ""),
            field=field, line=line,
        )
    return getter(_pk(value))


# ══════════════════════════════════════════════════════════════
# KIND RULES
# ══════════════════════════════════════════════════════════════

class KindRule:
    """What a document kind requires and how it moves stock."""

    kind: DocumentKind

    def resolve_metadata(self, directory: CatalogDirectory, metadata: Mapping) -> dict:
        raise NotImplementedError

    def line_source(self, directory: CatalogDirectory, metadata: dict, raw: Mapping, line: int):
        raise NotImplementedError

    def unique_key(self, product, source):
        raise NotImplementedError

    def duplicate_message(self, product, source, line: int, first: int) -> str:
        raise NotImplementedError

    def deltas(self, document: MovementDocument, line: MovementLine, actual: int):
        """[(product_id, warehouse_id, delta), ...] for one finalized line."""
        raise NotImplementedError

    def touched_pairs(self, document: MovementDocument, lines) -> list[tuple[int, int]]:
        return [
            (product_id, warehouse_id)
            for line in lines
            for product_id, warehouse_id, _ in self.deltas(document, line, 1)
        ]


class DeliveryRule(KindRule):
    """Stock leaves the network: one decrement per line, source chosen per line."""

    kind = DocumentKind.DELIVERY

    def resolve_metadata(self, directory, metadata):
        customer = str(metadata.get('customer') or '').strip()
        if not customer:
            raise ValidationError("Customer is required", field='customer')
        return {'customer': customer}

    def line_source(self, directory, metadata, raw, line):
        return _resolve(directory.get_warehouse, raw.get('warehouse'), 'warehouse', line)

    def unique_key(self, product, source):
        return (product.pk, source.pk)

    def duplicate_message(self, product, source, line, first):
        return (
            f"Product {product.pk} from warehouse {source.pk} is already on "
            f"line {first} (line {line})"
        )

    def deltas(self, document, line, actual):
        return [(line.product_id, line.source_warehouse_id, -actual)]


class TransferRule(KindRule):
    """Stock changes warehouse: decrement the source, increment the destination."""

    kind = DocumentKind.TRANSFER

    def resolve_metadata(self, directory, metadata):
        source = _resolve(directory.get_warehouse, metadata.get('source_warehouse'),
                          'source_warehouse')
        destination = _resolve(directory.get_warehouse, metadata.get('destination_warehouse'),
                               'destination_warehouse')
        if source.pk == destination.pk:
            raise ValidationError(
                "Source and destination warehouses must be different",
                field='destination_warehouse', warehouse=source.pk,
            )
        return {'source_warehouse': source, 'destination_warehouse': destination}

    def line_source(self, directory, metadata, raw, line):
        source = metadata['source_warehouse']
        requested = raw.get('warehouse')
        if requested not in (None, '') and _pk(requested) != source.pk:
            raise ValidationError(
                f"Transfer lines take stock from warehouse {source.pk} (line {line})",
                field='warehouse', line=line, warehouse=_pk(requested),
            )
        return source

    def unique_key(self, product, source):
        return product.pk

    def duplicate_message(self, product, source, line, first):
        return f"Product {product.pk} is already on line {first} (line {line})"

    def deltas(self, document, line, actual):
        return [
            (line.product_id, document.source_warehouse_id, -actual),
            (line.product_id, document.destination_warehouse_id, actual),
        ]


RULES = {
    DocumentKind.DELIVERY: DeliveryRule(),
    DocumentKind.TRANSFER: TransferRule(),
}


# ══════════════════════════════════════════════════════════════
# ENGINE
# ══════════════════════════════════════════════════════════════

class MovementEngine:
    """
    Creates drafts and finalizes them against the stock ledger.

    Collaborators are injected so tests and other catalogs can swap them;
    by default every engine of the process shares the same stock locks.
    """

    rules = RULES

    def __init__(self, ledger: StockLedger | None = None, store: DocumentStore | None = None,
                 locks: PairLocks | None = None, directory: CatalogDirectory | None = None):
        self.locks = locks or pair_locks
        self.ledger = ledger or StockLedger(self.locks)
        self.availability = Availability(self.ledger)
        self.store = store or DocumentStore()
        self._directory = directory

    @property
    def directory(self) -> CatalogDirectory:
        return self._directory or get_directory()

    # ══════════════════════════════════════════════════════════════
    # CREATE
    # ══════════════════════════════════════════════════════════════

    def create(self, kind, metadata: Mapping, lines, user=None) -> MovementDocument:
        """
        Create a draft document with its lines.

        Args:
            kind: 'delivery' or 'transfer'
            metadata: {'customer': ...} or
                {'source_warehouse': ..., 'destination_warehouse': ...}
            lines: [{'product': id|Product, 'quantity': int,
                     'warehouse': id|Warehouse (deliveries)}, ...]
            user: Creator, stored for audit

        Returns:
            The draft with its lines. Stock is not touched.

        Raises:
            ValidationError: Missing metadata, no lines, duplicate lines,
                same source and destination
            InvalidQuantityError: A quantity is not a positive integer
            NotFoundError: Unknown product or warehouse
            InsufficientStockError: A line already exceeds current stock
                (best-effort check, nothing is reserved)
        """
        kind = parse_kind(kind)
        rule = self.rules[kind]
        directory = self.directory

        resolved_metadata = rule.resolve_metadata(directory, metadata or {})
        resolved_lines = self._resolve_lines(rule, directory, resolved_metadata, lines)

        if stockflow_settings.CHECK_AVAILABILITY_ON_CREATE:
            for number, line in enumerate(resolved_lines, start=1):
                self.availability.check(
                    line['product'], line['source_warehouse'],
                    line['requested_quantity'], line=number,
                )

        document = self.store.create_document(kind, resolved_metadata, resolved_lines, user=user)

        logger.info(
            "movement.create",
            extra={
                "document_id": document.pk,
                "reference": document.reference,
                "kind": str(kind),
                "lines": len(resolved_lines),
            },
        )
        return document

    def create_delivery(self, customer: str, lines, user=None) -> MovementDocument:
        """Draft a delivery of lines to customer."""
        return self.create(DocumentKind.DELIVERY, {'customer': customer}, lines, user=user)

    def create_transfer(self, source_warehouse, destination_warehouse, lines,
                        user=None) -> MovementDocument:
        """Draft a transfer of lines from source_warehouse to destination_warehouse."""
        return self.create(
            DocumentKind.TRANSFER,
            {'source_warehouse': source_warehouse, 'destination_warehouse': destination_warehouse},
            lines,
            user=user,
        )

    # ══════════════════════════════════════════════════════════════
    # FINALIZE
    # ══════════════════════════════════════════════════════════════

    def finalize(self, document_id, actuals: Mapping | None = None, user=None,
                 kind=None) -> MovementDocument:
        """
        Apply a draft to the stock ledger and mark it FINALIZED.

        Transition: DRAFT → FINALIZED

        Args:
            document_id: Primary key of the document
            actuals: {line_number: actual_quantity}. None fulfils every line
                as requested; lines left out of a mapping move 0.
            user: Who finalized, stored for audit
            kind: Restrict to one kind of document

        Returns:
            The finalized document with its lines

        Raises:
            NotFoundError: No such document (of that kind)
            AlreadyFinalizedError: The document is not a draft; stock untouched
            ValidationError: actuals names lines the document does not have
            InvalidQuantityError: An actual is outside 0..requested
            InsufficientStockError: A source warehouse no longer holds enough
            BusyError: The stock locks could not be taken in time

        Concurrency:
            - Holds the pair locks of every touched (product, warehouse)
            - Runs under transaction.atomic()
            - Uses select_for_update() on the document and stock entries
            - Verifies status and availability after locking
        """
        document = self.store.get_document(document_id, kind=kind)
        rule = self.rules[document.kind]

        try:
            if not document.is_draft:
                raise AlreadyFinalizedError(
                    f"{document.reference} is already finalized",
                    document=document.pk,
                    reference=document.reference,
                )

            lines = list(document.lines.all())
            line_actuals = self._resolve_actuals(lines, actuals)
            pairs = rule.touched_pairs(document, lines)

            with self.locks.hold(pairs):
                try:
                    with transaction.atomic():
                        self._apply(rule, document.pk, lines, line_actuals, pairs, user)
                except OperationalError as exc:
                    raise BusyError(
                        f"{document.reference} could not lock its stock",
                        document=document.pk,
                    ) from exc
        except MovementError as exc:
            logger.info(
                "movement.finalize.rejected",
                extra={
                    "document_id": document.pk,
                    "reference": document.reference,
                    "code": exc.code,
                },
            )
            raise

        logger.info(
            "movement.finalize",
            extra={
                "document_id": document.pk,
                "reference": document.reference,
                "kind": document.kind,
                "moved": sum(line_actuals.values()),
                "requested": sum(line.requested_quantity for line in lines),
            },
        )
        return self.store.get_document(document.pk)

    def finalize_delivery(self, document_id, actuals: Mapping | None = None,
                          user=None) -> MovementDocument:
        """Validate a delivery: its stock leaves the source warehouses."""
        return self.finalize(document_id, actuals, user=user, kind=DocumentKind.DELIVERY)

    def finalize_transfer(self, document_id, actuals: Mapping | None = None,
                          user=None) -> MovementDocument:
        """Complete a transfer: its stock arrives at the destination."""
        return self.finalize(document_id, actuals, user=user, kind=DocumentKind.TRANSFER)

    # ══════════════════════════════════════════════════════════════
    # READS
    # ══════════════════════════════════════════════════════════════

    def get(self, document_id, kind=None) -> MovementDocument:
        return self.store.get_document(document_id, kind=kind)

    def list_documents(self, **filters):
        return self.store.list_documents(**filters)

    def available(self, product, warehouse) -> int:
        return self.availability.available_to_move(product, warehouse)

    # ══════════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════════

    def _resolve_lines(self, rule: KindRule, directory, metadata: dict, lines) -> list[dict]:
        """Validate raw lines into product/source_warehouse/requested_quantity dicts."""
        if isinstance(lines, (str, bytes, Mapping)) or not lines:
            raise ValidationError("At least one line is required", field='lines')

        resolved = []
        seen = {}
        for number, raw in enumerate(lines, start=1):
            if not isinstance(raw, Mapping):
                raise ValidationError(f"Line {number} is not a mapping", field='lines', line=number)

            product = _resolve(directory.get_product, raw.get('product'), 'product', number)
            source = rule.line_source(directory, metadata, raw, number)

            quantity = raw.get('quantity')
            if not _is_quantity(quantity) or quantity <= 0:
                raise InvalidQuantityError(
                    f"Quantity must be a positive integer (line {number})",
                    line=number, product=product.pk, requested=quantity,
                )

            key = rule.unique_key(product, source)
            if key in seen:
                raise ValidationError(
                    rule.duplicate_message(product, source, number, seen[key]),
                    field='product', line=number, duplicate_of=seen[key], product=product.pk,
                )
            seen[key] = number

            resolved.append({
                'product': product,
                'source_warehouse': source,
                'requested_quantity': quantity,
            })
        return resolved

    def _resolve_actuals(self, lines: list[MovementLine], actuals: Mapping | None) -> dict[int, int]:
        """{line_number: actual} for every line, validated against requested."""
        if actuals is None:
            return {line.line_number: line.requested_quantity for line in lines}

        if not isinstance(actuals, Mapping):
            raise ValidationError("Actual quantities must map line numbers to quantities",
                                  field='actuals')

        numbers = {line.line_number for line in lines}
        unknown = [number for number in actuals if number not in numbers]
        if unknown:
            raise ValidationError(
                f"Document has no line {', '.join(map(str, unknown))}",
                field='actuals', lines=unknown,
            )

        resolved = {}
        for line in lines:
            actual = actuals.get(line.line_number, 0)
            if not _is_quantity(actual) or not 0 <= actual <= line.requested_quantity:
                raise InvalidQuantityError(
                    f"Line {line.line_number} can move 0 to {line.requested_quantity}, got {actual!r}",
                    line=line.line_number,
                    product=line.product_id,
                    requested=line.requested_quantity,
                    actual=actual,
                )
            resolved[line.line_number] = actual
        return resolved

    def _apply(self, rule: KindRule, document_id: int, lines: list[MovementLine],
               line_actuals: dict[int, int], pairs, user) -> None:
        """Recheck + deltas + status write. Caller holds the locks and the transaction."""
        document = self.store.get_document(document_id, lock=True)
        if not document.is_draft:
            raise AlreadyFinalizedError(
                f"{document.reference} is already finalized",
                document=document.pk,
                reference=document.reference,
            )

        self.ledger.lock_entries(pairs)

        outgoing = defaultdict(int)
        first_line = {}
        for line in lines:
            outgoing[line.key] += line_actuals[line.line_number]
            first_line.setdefault(line.key, line.line_number)

        for (product_id, warehouse_id), quantity in sorted(outgoing.items()):
            if quantity:
                self.availability.check(product_id, warehouse_id, quantity,
                                        line=first_line[(product_id, warehouse_id)])

        for line in lines:
            actual = line_actuals[line.line_number]
            for product_id, warehouse_id, delta in rule.deltas(document, line, actual):
                self.ledger.apply_delta(
                    product_id, warehouse_id, delta,
                    document=document,
                    reason=f"{document.reference} line {line.line_number}",
                    user=user,
                )

        self.store.update_on_finalize(document, line_actuals, user=user)
