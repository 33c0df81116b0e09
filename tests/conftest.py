from types import SimpleNamespace
from typing import List, Optional

import pytest

from scholar_scraper.exceptions import NoMoreSessionsError
from scholar_scraper.models import ProxyMode
from scholar_scraper.navigator import Navigator


class FakeSession:
    """Replays scripted outcomes: (status, body) tuples or exceptions"""

    def __init__(self, name: str, script: List, log: List):
        self.name = name
        self.script = script
        self.log = log

    async def get(self, url, timeout=None):
        self.log.append((self.name, url, timeout))
        outcome = self.script.pop(0) if self.script else (200, "<html></html>")
        if isinstance(outcome, BaseException):
            raise outcome
        status, text = outcome
        return SimpleNamespace(status_code=status, text=text)

    async def close(self):
        pass


class FakeProvider:
    """
    Stand-in for ProxyGenerator: every session shares one script, so the
    outcomes play in order regardless of rotation.
    """

    def __init__(self, name: str, script: List, timeout: float = 5.0,
                 max_rotations: Optional[int] = None, mode: ProxyMode = ProxyMode.NONE):
        self.name = name
        self.script = script
        self.timeout = timeout
        self.max_rotations = max_rotations
        self.proxy_mode = mode
        self.rotations = 0
        self.log: List = []
        self.closed = False
        self._session = FakeSession(f"{name}#0", script, self.log)

    def client(self):
        return self._session

    async def rotate(self):
        self.rotations += 1
        self._session = FakeSession(f"{self.name}#{self.rotations}", self.script, self.log)
        return self._session

    async def get_next_client(self, num_tries=None):
        if self.max_rotations is not None and self.rotations >= self.max_rotations:
            raise NoMoreSessionsError("no more sessions")
        return await self.rotate(), self.timeout

    async def aclose(self):
        self.closed = True


@pytest.fixture
def make_nav():
    """Navigator wired to fake providers; sleeps are recorded, not awaited"""

    def _make(premium_script=None, secondary_script=None, retries=3, timeout=5.0, **kwargs):
        nav = Navigator(timeout=timeout, max_retries=retries, **kwargs)
        nav.pm1 = FakeProvider("premium", premium_script if premium_script is not None else [],
                               timeout=timeout)
        nav.pm2 = FakeProvider("secondary", secondary_script if secondary_script is not None else [],
                               timeout=timeout)
        nav.sleeps = []

        async def _pause(seconds):
            nav.sleeps.append(seconds)

        nav._pause = _pause
        return nav

    return _make


# ---------------------------------------------------------------------------
# Inline HTML fixtures
# ---------------------------------------------------------------------------

def scholar_row(i: int, title: str = None, cites: int = 0, cid: str = None) -> str:
    cid = cid or f"cid{i}"
    title = title or f"Paper {i}"
    cited = (
        f'<a href="/scholar?cites=111{i},222{i}&amp;as_sdt=5">Cited by {cites}</a>'
        if cites else ""
    )
    return f"""
<div class="gs_r gs_or gs_scl" data-cid="{cid}" data-rp="{i}">
  <div class="gs_ggs gs_fl"><a href="https://example.org/{i}.pdf">[PDF]</a></div>
  <div class="gs_ri">
    <h3 class="gs_rt"><span class="gs_ctc">[BOOK]</span><a href="https://example.org/{i}">{title}</a></h3>
    <div class="gs_a"><a href="/citations?user=AAAA{i}&amp;hl=en">A Author</a>, B Writer - Journal of Tests, 2020 - example.org</div>
    <div class="gs_rs">Summary of paper {i}…</div>
    <div class="gs_fl">{cited}<a href="/scholar?q=related:{cid}:scholar.google.com/">Related articles</a></div>
  </div>
</div>"""


def scholar_page(start: int, count: int, next_url: str = None, total: str = None) -> str:
    rows = "".join(scholar_row(start + i) for i in range(count))
    nav = (
        f'<div id="gs_n"><a href="{next_url}"><span class="gs_ico gs_ico_nav_next"></span></a></div>'
        if next_url else ""
    )
    header = f'<div class="gs_ab_mdw">About {total} results (0.05 sec)</div>' if total else ""
    return (
        f'<html><body><div id="gs_res_glb" data-sva="/scholar?lib={{id}}"></div>'
        f"{header}{rows}{nav}</body></html>"
    )


def author_row(user: str, name: str) -> str:
    return f"""
<div class="gsc_1usr">
  <a href="/citations?hl=en&amp;user={user}"><img src="x.jpg"></a>
  <h3 class="gs_ai_name"><a href="/citations?hl=en&amp;user={user}">{name}</a></h3>
  <div class="gs_ai_aff">Test University</div>
  <div class="gs_ai_eml">Verified email at test.edu</div>
  <div class="gs_ai_cby">Cited by 1234</div>
  <a class="gs_ai_one_int" href="#">Testing</a>
  <a class="gs_ai_one_int" href="#">Retrieval</a>
</div>"""


def author_page(users, next_after: str = None) -> str:
    rows = "".join(author_row(user, name) for user, name in users)
    if next_after:
        onclick = (
            "window.location='/citations?view_op\\x3dsearch_authors\\x26hl\\x3den"
            f"\\x26mauthors\\x3dtest\\x26after_author\\x3d{next_after}'"
        )
        button = f'<button class="gsc_pgn_pnx" onclick="{onclick}"></button>'
    else:
        button = '<button class="gsc_pgn_pnx" disabled></button>'
    return f"<html><body>{rows}{button}</body></html>"


PROFILE_PAGE = """
<html><head><link rel="canonical" href="https://scholar.google.com/citations?user=CANON123&amp;hl=en"></head>
<body>
<div id="gsc_prf_in">Ada Lovelace</div>
<img id="gsc_prf_pup-img" src="https://scholar.googleusercontent.com/ada.jpg">
<div class="gsc_prf_il"><a href="/citations?view_op=view_org&amp;org=4242">Analytical Engine Society</a></div>
<div class="gsc_prf_il" id="gsc_prf_ivh">Verified email at engine.org - <a class="gsc_prf_ila" href="https://ada.example">Homepage</a></div>
<a class="gsc_prf_inta">Mathematics</a><a class="gsc_prf_inta">Computing</a>
<table>
<tr><td class="gsc_rsb_std">1,000</td><td class="gsc_rsb_std">500</td></tr>
<tr><td class="gsc_rsb_std">20</td><td class="gsc_rsb_std">15</td></tr>
<tr><td class="gsc_rsb_std">30</td><td class="gsc_rsb_std">25</td></tr>
</table>
<span class="gsc_g_t">2021</span><span class="gsc_g_t">2022</span><span class="gsc_g_t">2023</span>
<a class="gsc_g_a" style="z-index:3"><span class="gsc_g_al">10</span></a>
<a class="gsc_g_a" style="z-index:1"><span class="gsc_g_al">30</span></a>
<div class="gsc_rsb_m_a">7 articles</div>
<div class="gsc_rsb_m_na">2 articles</div>
<div class="gsc_rsb_a_desc"><a href="/citations?user=CO1&amp;hl=en">Charles Babbage</a><span class="gsc_rsb_a_ext">Cambridge</span></div>
<table>
<tr class="gsc_a_tr">
  <td><a class="gsc_a_at" href="/citations?view_op=view_citation&amp;citation_for_view=CANON123:abc-1">Notes on the Engine</a>
  <div class="gs_gray">A Lovelace</div><div class="gs_gray">Scientific Memoirs 3, 1843</div></td>
  <td><a class="gsc_a_ac" href="https://scholar.google.com/scholar?cites=999,888">42</a></td>
  <td><span class="gsc_a_h">1843</span></td>
</tr>
<tr class="gsc_a_tr">
  <td><a class="gsc_a_at" href="/citations?view_op=view_citation&amp;citation_for_view=CANON123:def-2">Letters</a>
  <div class="gs_gray">A Lovelace</div><div class="gs_gray">Private, 1844</div></td>
  <td><a class="gsc_a_ac"></a></td>
  <td><span class="gsc_a_h">1844</span></td>
</tr>
</table>
<button id="gsc_bpf_more" disabled></button>
</body></html>
"""

DETAIL_PAGE = """
<html><body>
<div id="gsc_oci_title"><a class="gsc_oci_title_link" href="https://example.org/notes">Notes on the Engine</a></div>
<div class="gs_scl"><div class="gsc_oci_field">Authors</div><div class="gsc_oci_value">Ada Lovelace, Luigi Menabrea</div></div>
<div class="gs_scl"><div class="gsc_oci_field">Publication date</div><div class="gsc_oci_value">1843/10/1</div></div>
<div class="gs_scl"><div class="gsc_oci_field">Journal</div><div class="gsc_oci_value">Scientific Memoirs</div></div>
<div class="gs_scl"><div class="gsc_oci_field">Volume</div><div class="gsc_oci_value">3</div></div>
<div class="gs_scl"><div class="gsc_oci_field">Pages</div><div class="gsc_oci_value">666-731</div></div>
<div class="gs_scl"><div class="gsc_oci_field">Description</div><div class="gsc_oci_value">Abstract The engine weaves algebraic patterns.</div></div>
<div class="gs_scl"><div class="gsc_oci_field">Total citations</div><div class="gsc_oci_value"><a href="https://scholar.google.com/scholar?oi=bibs&amp;cites=999,888">Cited by 42</a></div></div>
<span class="gsc_oci_g_t">2020</span><span class="gsc_oci_g_t">2021</span>
<a class="gsc_oci_g_a" href="/scholar?as_ylo=2021&amp;as_yhi=2021"><span class="gsc_oci_g_al">5</span></a>
</body></html>
"""

DOS_PAGE = '<html><body><div class="rc-doscaptcha-body">unusual traffic</div></body></html>'
CAPTCHA_PAGE = '<html><body><form id="gs_captcha_ccl"></form></body></html>'
