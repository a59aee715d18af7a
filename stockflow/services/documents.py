"""
Document store — persistence of movement documents and their lines.

Creation writes a document and all its lines in one transaction.
update_on_finalize() is meant to run inside the engine's finalize
transaction, together with the ledger deltas.
"""

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from stockflow.exceptions import AlreadyFinalizedError, NotFoundError, ValidationError
from stockflow.models.document import MovementDocument, MovementLine
from stockflow.models.enums import DocumentKind, DocumentStatus
from stockflow.services.ledger import _pk


def parse_kind(kind) -> DocumentKind:
    """Closed set of kinds; anything else is a ValidationError."""
    try:
        return DocumentKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown document kind {kind!r}", field='kind', value=kind)


def parse_status(status) -> DocumentStatus:
    """Closed set of statuses; anything else is a ValidationError."""
    try:
        return DocumentStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown document status {status!r}", field='status', value=status)


class DocumentStore:
    """Create, read and finalize-write movement documents."""

    def create_document(self, kind, metadata: dict, lines: list[dict],
                        user=None) -> MovementDocument:
        """
        Persist a draft and its lines atomically.

        Args:
            kind: DocumentKind
            metadata: customer, or source_warehouse/destination_warehouse
            lines: dicts with product, source_warehouse, requested_quantity,
                already validated by the engine

        Returns:
            The draft, with lines loaded
        """
        kind = parse_kind(kind)

        with transaction.atomic():
            document = MovementDocument.objects.create(
                kind=kind,
                status=DocumentStatus.DRAFT,
                customer=metadata.get('customer', ''),
                source_warehouse=metadata.get('source_warehouse'),
                destination_warehouse=metadata.get('destination_warehouse'),
                created_by=user,
            )
            MovementLine.objects.bulk_create([
                MovementLine(
                    document=document,
                    line_number=number,
                    product=line['product'],
                    source_warehouse=line['source_warehouse'],
                    requested_quantity=line['requested_quantity'],
                )
                for number, line in enumerate(lines, start=1)
            ])

        return self.get_document(document.pk)

    def get_document(self, document_id, kind=None, lock: bool = False) -> MovementDocument:
        """
        Fetch one document with its lines.

        Args:
            document_id: Primary key
            kind: Restrict to one kind (a document of the other kind is not found)
            lock: select_for_update() the document row (requires a transaction)

        Raises:
            NotFoundError: If no such document exists
        """
        qs = MovementDocument.objects.all()
        if kind is not None:
            qs = qs.filter(kind=parse_kind(kind))
        if lock:
            qs = qs.select_for_update()
        else:
            qs = qs.select_related('source_warehouse', 'destination_warehouse').with_lines()

        try:
            return qs.get(pk=document_id)
        except (MovementDocument.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(
                f"{DocumentKind(kind).label if kind else 'Document'} {document_id} not found",
                entity=str(kind or 'document'),
                id=document_id,
            )

    def list_documents(self, kind=None, status=None, warehouse=None,
                       product=None, customer: str | None = None):
        """
        List documents, newest first.

        Args:
            kind: Only this kind
            status: Only this status
            warehouse: Documents that take from or bring to this warehouse
            product: Documents with a line for this product
            customer: Case-insensitive substring of the delivery customer
        """
        qs = MovementDocument.objects.with_lines()

        if kind is not None:
            qs = qs.filter(kind=parse_kind(kind))

        if status is not None:
            qs = qs.filter(status=parse_status(status))

        if warehouse is not None:
            wid = _pk(warehouse)
            qs = qs.filter(
                Q(source_warehouse_id=wid)
                | Q(destination_warehouse_id=wid)
                | Q(lines__source_warehouse_id=wid)
            )

        if product is not None:
            qs = qs.filter(lines__product_id=_pk(product))

        if customer:
            qs = qs.filter(customer__icontains=customer)

        return qs.distinct()

    def update_on_finalize(self, document: MovementDocument, line_actuals: dict[int, int],
                           user=None) -> MovementDocument:
        """
        Write actual quantities and flip the document to FINALIZED.

        Must run inside the transaction that applies the ledger deltas, so
        that a failure here rolls those back too.

        Raises:
            AlreadyFinalizedError: If the document is not a draft
        """
        if not transaction.get_connection().in_atomic_block:
            raise RuntimeError("update_on_finalize() must run inside transaction.atomic()")

        if document.status != DocumentStatus.DRAFT:
            raise AlreadyFinalizedError(
                f"{document.reference} is already finalized",
                document=document.pk,
                reference=document.reference,
            )

        lines = list(document.lines.all())
        for line in lines:
            line.actual_quantity = line_actuals[line.line_number]
        MovementLine.objects.bulk_update(lines, ['actual_quantity'])

        document.status = DocumentStatus.FINALIZED
        document.finalized_at = timezone.now()
        document.finalized_by = user
        document.save(update_fields=['status', 'finalized_at', 'finalized_by'])
        return document
