"""
Unit tests for MessageCursor.
"""

from apns_client.cursor import MessageCursor


def test_peek_does_not_consume(messages):
    cursor = MessageCursor(messages)
    assert cursor.peek() is messages[0]
    assert cursor.peek() is messages[0]
    assert cursor.position == 0


def test_advance_until_exhausted(messages):
    cursor = MessageCursor(messages)
    assert [cursor.advance() for _ in range(3)] == messages
    assert not cursor.has_next()
    assert cursor.peek() is None
    assert cursor.advance() is None
    assert cursor.position == 3


def test_rewind(messages):
    cursor = MessageCursor(messages)
    cursor.advance()
    cursor.advance()
    cursor.rewind()
    assert cursor.position == 0
    assert cursor.peek() is messages[0]


def test_rewind_to_resumes_after_failed_message(messages):
    cursor = MessageCursor(messages)
    for _ in messages:
        cursor.advance()

    assert cursor.rewind_to(2) is True
    assert cursor.peek() is messages[2]
    assert cursor.position == 2


def test_rewind_to_searches_whole_list(messages):
    cursor = MessageCursor(messages)
    cursor.advance()
    # id 3 is still ahead of the cursor
    assert cursor.rewind_to(3) is True
    assert not cursor.has_next()


def test_rewind_to_last_then_first(messages):
    cursor = MessageCursor(messages)
    for _ in messages:
        cursor.advance()
    assert cursor.rewind_to(1)
    assert cursor.peek() is messages[1]


def test_rewind_to_unknown_leaves_position(messages):
    cursor = MessageCursor(messages)
    cursor.advance()
    cursor.advance()

    assert cursor.rewind_to(999) is False
    assert cursor.position == 2


def test_list_is_copied_and_never_mutated(messages):
    source = list(messages)
    cursor = MessageCursor(source)
    source.pop()
    for _ in range(3):
        cursor.advance()
    cursor.rewind_to(1)
    assert len(cursor) == 3
    assert cursor.messages == tuple(messages)


def test_find(messages):
    cursor = MessageCursor(messages)
    assert cursor.find(2) is messages[1]
    assert cursor.find(42) is None
