from bmw_scrapper.codes import (
    clean_url,
    collect_candidate_links,
    configure_form,
    extract_configure_codes,
    extract_summary_codes,
    forge_urls,
    guess_model_code,
    pick_candidate,
)

CONFIGURE = "https://configure.bmw.co.uk/en_GB/configure/G05/21EM/SE000001?tracking=1"


def test_configure_codes():
    assert extract_configure_codes(CONFIGURE) == ("G05", "21EM")


def test_configure_codes_missing():
    assert extract_configure_codes("https://www.bmw.co.uk/en/all-models.html") == ("", "")
    assert extract_configure_codes("") == ("", "")
    assert extract_configure_codes(None) == ("", "")


def test_summary_codes_from_forged_url():
    forged = forge_urls([CONFIGURE], current_url="")
    assert forged.summary_url == "https://configure.bmw.co.uk/en_GB/summary/G05/21EM/SE000001?tracking=1"
    assert extract_summary_codes(forged.summary_url) == ("G05", "21EM", "SE000001")


def test_summary_codes_ignore_non_model_last_segment():
    assert extract_summary_codes("https://configure.bmw.co.uk/en_GB/summary/G05/21EM/extras/") == (
        "G05",
        "21EM",
        "",
    )


def test_configure_form_moves_summary_onto_configure_host():
    url = "https://www.bmw.co.uk/en_GB/summary/G20/71FF/SE000002?x=1"
    assert configure_form(url) == "https://configure.bmw.co.uk/en_GB/configure/G20/71FF/SE000002?x=1"


def test_clean_url_drops_query_and_fragment():
    assert clean_url("https://configure.bmw.co.uk/a/b/?q=1#top") == "https://configure.bmw.co.uk/a/b/"
    assert clean_url("not a url?q=1") == "not a url"


def test_collect_candidate_links_keeps_page_order_and_dedups():
    html = """
    <html><head>
      <link rel="canonical" href="/en_GB/configure/G05/21EM/SE000001">
      <meta property="og:url" content="https://configure.bmw.co.uk/en_GB/configure/G05/21EM/SE000001">
    </head><body>
      <a href="/en/all-models.html">All models</a>
      <a href="/en_GB/summary/G05/21EM/SE000001">Summary</a>
      <a href="/en_GB/summary/G05/21EM/SE000001">Summary again</a>
    </body></html>
    """
    links = collect_candidate_links(html, "https://configure.bmw.co.uk/en_GB/configure/G05/")
    assert links == [
        "https://configure.bmw.co.uk/en_GB/summary/G05/21EM/SE000001",
        "https://configure.bmw.co.uk/en_GB/configure/G05/21EM/SE000001",
    ]


def test_pick_candidate_prefers_configure():
    picked = pick_candidate(["https://x/summary/A/B/", "https://x/configure/A/B/"])
    assert picked == "https://x/configure/A/B/"
    assert pick_candidate(["https://x/other"]) == ""


def test_forge_falls_back_to_current_configure_url():
    forged = forge_urls([], "https://www.bmw.co.uk/en_GB/configure/G05/21EM/")
    assert forged.configure_url == "https://configure.bmw.co.uk/en_GB/configure/G05/21EM/"
    assert forged.summary_url == "https://configure.bmw.co.uk/en_GB/summary/G05/21EM/"


def test_forge_synthesizes_summary_from_configurator_fragment():
    forged = forge_urls([], "https://www.bmw.co.uk/en/configurator/bmw/SE000003/options")
    assert forged.configure_url == ""
    assert forged.summary_url == "https://www.bmw.co.uk/en/configurator/summary/en_GB/SE000003/"
    assert forged.model_code == "SE000003"


def test_forge_nothing_found():
    forged = forge_urls([], "https://www.bmw.co.uk/en/all-models.html")
    assert (forged.configure_url, forged.summary_url, forged.model_code) == ("", "", "")


def test_identity_from_forged_urls():
    identity = forge_urls([CONFIGURE], "").to_identity()
    assert identity.series_code == "G05"
    assert identity.line_code == "21EM"
    assert identity.model_code == "SE000001"


def test_guess_model_code_token_after_line():
    assert guess_model_code("https://configure.bmw.co.uk/en_GB/configure/G05/21EM/IX22/") == "IX22"
    assert guess_model_code("", "https://www.bmw.co.uk/en/configurator/summary/en_GB/SE000009/") == "SE000009"
    assert guess_model_code("https://configure.bmw.co.uk/en_GB/configure/G05/21EM/") == ""
