"""Conversation feature package: entities, repository, DTOs, controller, and router.

Conversations and their messages live under the owning user's id, mirroring
the ``users/{uid}/conversations/{id}/messages`` layout the chat turn reads and
writes.
"""
