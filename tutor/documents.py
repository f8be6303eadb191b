from __future__ import annotations

from dataclasses import dataclass, field

from tutor.schemas import DocumentInfo


@dataclass
class UploadedDocument:
    id: str
    name: str
    size: int
    type: str
    data: bytes = field(default=b"", repr=False)

    def info(self) -> DocumentInfo:
        return DocumentInfo(id=self.id, name=self.name, size=self.size, type=self.type)


class DocumentStore:
    """Insertion-ordered list of uploaded documents plus the current selection."""

    def __init__(self) -> None:
        self.documents: list[UploadedDocument] = []
        self.selected: UploadedDocument | None = None

    def add_document(self, doc: UploadedDocument) -> UploadedDocument:
        self.documents.append(doc)
        self.selected = doc
        return doc

    def set_selected_document(self, doc: UploadedDocument | None) -> None:
        self.selected = doc

    def remove_document(self, doc_id: str) -> None:
        self.documents = [d for d in self.documents if d.id != doc_id]
        if self.selected is not None and self.selected.id == doc_id:
            self.selected = None

    def get_document(self, doc_id: str) -> UploadedDocument | None:
        for doc in self.documents:
            if doc.id == doc_id:
                return doc
        return None
