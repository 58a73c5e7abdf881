from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.errors import ConflictError, ValidationError, register_exception_handlers
from app.services.mailer import LogMailer, build_mailer, render_otp_email


def _app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/conflict")
    def _conflict():
        raise ConflictError("Email already registered")

    @app.get("/invalid")
    def _invalid():
        raise ValidationError(errors=[{"field": "mobile", "message": "bad"}])

    @app.get("/boom")
    def _boom():
        raise RuntimeError("secret detail")

    return app


def test_app_errors_render_message_and_extras():
    client = TestClient(_app())
    resp = client.get("/conflict")
    assert resp.status_code == 409
    assert resp.json() == {"message": "Email already registered"}
    resp = client.get("/invalid")
    assert resp.status_code == 400
    assert resp.json() == {"message": "Validation failed", "errors": [{"field": "mobile", "message": "bad"}]}


def test_unhandled_errors_do_not_leak_details():
    client = TestClient(_app(), raise_server_exceptions=False)
    resp = client.get("/boom")
    assert resp.status_code == 500
    assert resp.json() == {"message": "Internal server error"}


def test_otp_email_escapes_name():
    subject, body = render_otp_email("<script>", "123456", 5)
    assert "Krushi Mithra" in subject
    assert "<script>" not in body
    assert "123456" in body and "5 minutes" in body


def test_mailer_without_smtp_reports_undelivered(monkeypatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)
    mailer = build_mailer()
    assert isinstance(mailer, LogMailer)
    assert mailer.send("ravi@example.com", "subject", "<p>body</p>") is False
