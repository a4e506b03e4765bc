import io

from meshnet.sshd.writer import StringWriter


def test_write_line_appends_newline():
    buf = io.BytesIO()
    w = StringWriter(buf)
    w.write_line("Closed")
    assert buf.getvalue() == b"Closed\n"


def test_write_has_no_newline():
    buf = io.BytesIO()
    w = StringWriter(buf)
    w.write("abc")
    w.write("def")
    assert buf.getvalue() == b"abcdef"


def test_write_bytes_raw():
    buf = io.BytesIO()
    w = StringWriter(buf)
    w.write_bytes(b"\x00\xff")
    assert buf.getvalue() == b"\x00\xff"


def test_stream_exposed():
    buf = io.BytesIO()
    w = StringWriter(buf)
    assert w.stream is buf


def test_unicode_encoded_as_utf8():
    buf = io.BytesIO()
    StringWriter(buf).write("µ")
    assert buf.getvalue().decode("utf-8") == "µ"