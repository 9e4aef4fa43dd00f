"""Chat feature: one conversational turn per request.

TokenVerifier → ContextLoader → CompletionInvoker → TurnPersister, sequenced by
ChatController.
"""
