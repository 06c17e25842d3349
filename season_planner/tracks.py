"""
Track name normalization.

Ownership is tracked per base track, so "Road America - Club" and
"Road America" are the same piece of content.
"""

CONFIG_SEPARATOR = " - "


def base_track_name(raw_track: str) -> str:
    """
    Strip the configuration suffix from a raw track string.

    Args:
        raw_track: Track text from the schedule (e.g., "Road America - Club")

    Returns:
        Base track name (e.g., "Road America").
    """
    separator_index = raw_track.find(CONFIG_SEPARATOR)
    if separator_index > 0:
        return raw_track[:separator_index].strip()
    return raw_track.strip()
