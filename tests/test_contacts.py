"""Contact, social and address extraction from page markup."""

from __future__ import annotations

from legitimacy_agent.contacts import (
    MAX_EMAILS,
    extract_contacts,
    extract_emails,
    extract_social_links,
    visible_text,
)

PAGE = """
<html>
<head>
  <style>.hero { color: red; }</style>
  <script>var support = "hidden@scripted.io"; var fb = "https://facebook.com/scriptonly";</script>
</head>
<body>
  <a href="mailto:info@acme-widgets.com">Email us</a>
  <p>Call (415) 555-2671 or +1 415-555-2671</p>
  <p>Sales: 212.555.0100</p>
  <p>Visit 123 Main Street, Springfield</p>
  <a href="https://www.facebook.com/acmewidgets">Facebook</a>
  <a href="https://facebook.com/sharer/sharer.php?u=acme">Share</a>
  <a href="https://twitter.com/acme">Twitter</a>
  <a href="https://x.com/intent/tweet?text=hi">Post</a>
  <img src="/img/logo@2x.png">
  <p>Example: someone@example.com</p>
</body>
</html>
"""


def test_extracts_each_category() -> None:
    bundle = extract_contacts(PAGE)

    assert bundle.emails == ("info@acme-widgets.com",)
    assert bundle.phone_numbers == ("(415) 555-2671", "212.555.0100")
    assert bundle.addresses == ("123 Main Street",)
    assert [(link.platform, link.url) for link in bundle.social_links] == [
        ("facebook", "https://www.facebook.com/acmewidgets"),
        ("twitter", "https://twitter.com/acme"),
    ]
    assert all(link.status == "found" for link in bundle.social_links)
    assert bundle.has_contact_info
    assert bundle.has_social_media


def test_extraction_is_idempotent() -> None:
    assert extract_contacts(PAGE) == extract_contacts(PAGE)


def test_empty_markup_gives_empty_bundle() -> None:
    bundle = extract_contacts("")

    assert bundle.emails == ()
    assert bundle.social_links == ()
    assert not bundle.has_contact_info
    assert not bundle.has_social_media


def test_email_cap_keeps_document_order() -> None:
    markup = " ".join(f"user{i}@acme-widgets.com" for i in range(8))

    emails = extract_emails(markup)

    assert len(emails) == MAX_EMAILS
    assert emails[0] == "user0@acme-widgets.com"
    assert emails[-1] == "user4@acme-widgets.com"


def test_duplicate_emails_collapse() -> None:
    assert extract_emails("Sales@Acme.io sales@acme.io") == ("sales@acme.io",)


def test_social_links_capped_per_platform() -> None:
    markup = " ".join(f'<a href="https://instagram.com/acme{i}">ig</a>' for i in range(4))

    links = extract_social_links(markup)

    assert [link.url for link in links] == ["https://instagram.com/acme0", "https://instagram.com/acme1"]


def test_social_url_without_scheme_gets_https() -> None:
    links = extract_social_links("Follow www.linkedin.com/company/acme for news")

    assert links[0].url == "https://www.linkedin.com/company/acme"


def test_visible_text_drops_markup() -> None:
    text = visible_text("<p>Fish &amp; Chips</p><script>alert(1)</script>\n\n<b>today</b>")

    assert text == "Fish & Chips today"
