"""Error Handler - provides user-friendly error messages for job records and logs."""

from typing import Optional


def format_error_message(
    operation: str,
    error: Exception,
    context: Optional[dict] = None,
    suggestion: Optional[str] = None,
) -> str:
    """
    Format a user-friendly error message.

    Args:
        operation: What operation was being performed (e.g., "Requesting clip 3")
        error: The exception that occurred
        context: Additional context (e.g., {"job_id": "job_123", "clip_index": 2})
        suggestion: Optional suggestion for how to fix the issue

    Returns:
        Formatted error message
    """
    error_type = type(error).__name__
    error_msg = str(error)

    context_str = ""
    if context:
        context_parts = [f"{k}={v}" for k, v in context.items()]
        context_str = f" ({', '.join(context_parts)})"

    message = f"{operation} failed{context_str}\n"
    message += f"   Error: {error_type}: {error_msg}"

    if suggestion:
        message += f"\n   Suggestion: {suggestion}"

    return message


def get_fallback_suggestion(service: str, error: Exception) -> Optional[str]:
    """
    Get a suggestion for how to handle a service failure.

    Args:
        service: Service name ("Video Generation", "Media Processing", "Merge")
        error: The exception

    Returns:
        Suggestion string or None
    """
    error_msg = str(error).lower()

    if service == "Video Generation":
        if "api key" in error_msg or "not configured" in error_msg:
            return "Check the provider credentials in .env. This clip is marked failed; the rest continue."
        elif "rate limit" in error_msg or "429" in error_msg:
            return "Provider rate limit hit. Increase the inter-request delay. Missing footage is covered by filler."
        elif "network" in error_msg or "timeout" in error_msg:
            return "Network error talking to the provider. The clip will be polled again on the next tick."
        else:
            return "Clip generation failed. Missing footage is covered by filler from the last completed clip."

    elif service == "Media Processing":
        if "not found" in error_msg or "no such file" in error_msg:
            return "Source clip is missing on disk. Re-download it or mark the clip failed."
        else:
            return "Re-encode failed. The unmodified source clip is used instead; its duration may drift."

    elif service == "Merge":
        if "no completed" in error_msg or "no usable" in error_msg:
            return "Every clip failed. Check provider status and start a new job."
        else:
            return "Merge failed. Individual clips are kept on disk; retry the merge step."

    return None
