from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from invoicedesk.invoice_numbering import build_invoice_filename
from invoicedesk.models import InvoiceContent


logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


@dataclass(frozen=True)
class SharePayload:
    filename: str
    title: str
    text: str
    mime: str
    data: bytes


class DeliveryOutcome(str, Enum):
    SHARED = "shared"
    DOWNLOADED = "downloaded"
    SHARE_FAILED_DOWNLOADED = "share_failed_downloaded"


ShareFn = Callable[[SharePayload], None]
DownloadFn = Callable[[SharePayload], None]
ViewFn = Callable[[SharePayload], None]


def build_share_payload(invoice: InvoiceContent, pdf_bytes: bytes) -> SharePayload:
    return SharePayload(
        filename=build_invoice_filename(invoice.number),
        title=f"Invoice {invoice.number}",
        text=f"Invoice for {invoice.customer.name}",
        mime=PDF_MIME_TYPE,
        data=pdf_bytes,
    )


def deliver_document(
    payload: SharePayload,
    download: DownloadFn,
    view: Optional[ViewFn] = None,
    share: Optional[ShareFn] = None,
) -> DeliveryOutcome:
    """Hand the document to the platform share sheet, or download it.

    Without a share capability, or when sharing raises, the document is
    downloaded and, if a viewer is given, opened.
    """
    if share is not None:
        try:
            share(payload)
        except Exception:
            logger.warning("Sharing %s failed; downloading instead", payload.filename, exc_info=True)
            outcome = DeliveryOutcome.SHARE_FAILED_DOWNLOADED
        else:
            logger.info("Shared %s", payload.filename)
            return DeliveryOutcome.SHARED
    else:
        logger.info("Sharing not available; downloading %s", payload.filename)
        outcome = DeliveryOutcome.DOWNLOADED

    download(payload)
    if view is not None:
        view(payload)
    return outcome
