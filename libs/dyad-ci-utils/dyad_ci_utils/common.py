import re

# ---------------------------------------------------------------------------- #
#                              Formatting Helper                               #
# ---------------------------------------------------------------------------- #


def to_table_cell(value: str, *, max_len: int | None = None) -> str:
    """
    Helper function to clean up a string to use inside of a Markdown table.
        * removes unwanted bytes
        * joins lines with `<br>`
        * escapes "|"
        * can be length restricted using `max_len`
    """
    value = re.sub(r"[^\x20-\x7E\r\n\t]", "?", value)
    value = value.replace("\r", "").strip().replace("\n", "<br>").replace("|", "\\|")
    if max_len is not None and len(value) > max_len:
        value = value[:max_len] + " (...)"
    return value


# ---------------------------------------------------------------------------- #
#                             General Parser Helper                            #
# ---------------------------------------------------------------------------- #


def parse_hms_as_seconds(hms: str) -> int | None:
    """Given a time amount given in `hms` format, e.g. `2h10m`, `55m1s`, `1h1m1s`,
    it returns the amount in seconds. If the format is malformed, the return value
    is `None`.
    """

    pattern = re.compile(r"^((?P<h>[0-9]+)h)?((?P<m>[0-9]+)m)?((?P<s>[0-9]+)s)?$")
    matched = re.match(pattern, hms.strip())

    if matched:
        hours = matched.group("h")
        minutes = matched.group("m")
        seconds = matched.group("s")

        if hours is None and minutes is None and seconds is None:
            return None

        accumulator = 0
        accumulator += int(hours) * 3600 if hours else 0
        accumulator += int(minutes) * 60 if minutes else 0
        accumulator += int(seconds) if seconds else 0

        return accumulator

    return None


# ---------------------------------------------------------------------------- #
