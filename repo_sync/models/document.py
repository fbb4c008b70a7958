"""Mapping between change operations and LangChain documents.

RAG hosts consume add/update operations as LangChain ``Document`` objects and
key their vector store entries by ``file_id`` so that a later delete operation
can remove them.
"""

from langchain_core.documents import Document

from repo_sync.models.source import ChangeAction, ChangeOperation


def to_langchain_document(operation: ChangeOperation) -> Document:
    """Convert an add or update operation to a LangChain Document.

    Args:
        operation: Operation carrying content

    Returns:
        Document whose metadata holds file_id, path, action and modified_at

    Raises:
        ValueError: If the operation is a delete
    """
    if operation.action is ChangeAction.DELETE or operation.content is None:
        raise ValueError(f"Cannot build a document for delete operation {operation.identifier}")

    metadata = {
        "file_id": operation.identifier,
        "action": operation.action.value,
    }
    if operation.path is not None:
        metadata["path"] = operation.path
    if operation.modified_at is not None:
        metadata["modified_at"] = operation.modified_at

    return Document(page_content=operation.content, metadata=metadata)


def to_langchain_documents(operations: dict[str, ChangeOperation]) -> list[Document]:
    """Convert every add/update operation of a cycle, skipping deletes."""
    return [
        to_langchain_document(operation)
        for operation in operations.values()
        if operation.action is not ChangeAction.DELETE
    ]


def deleted_file_ids(operations: dict[str, ChangeOperation]) -> list[str]:
    """Return identifiers the host should remove from its store."""
    return [
        file_id
        for file_id, operation in operations.items()
        if operation.action is ChangeAction.DELETE
    ]
