"""Shared fixtures: a small CMS installation on the local disk."""

from pathlib import Path

import pytest

from cms_extension_packager.installation import Installation
from cms_extension_packager.platforms.local import LocalBackend


COMPONENT_MANIFEST = """<?xml version="1.0" encoding="utf-8"?>
<extension type="component" version="3.0" method="upgrade">
    <name>Events</name>
    <creationDate>2020-01-01</creationDate>
    <author>Events Team</author>
    <authorEmail>team@example.com</authorEmail>
    <authorUrl>https://example.com</authorUrl>
    <copyright>(C) 2020 Example</copyright>
    <license>GPL-2.0-or-later</license>
    <version>1.2.0</version>
    <description>COM_EVENTS_DESCRIPTION</description>
    <!-- COM_EVENTS_UNUSED is not really referenced here -->
    <scriptfile>script.php</scriptfile>
    <install>
        <sql>
            <file driver="mysql" charset="utf8">sql/install.mysql.utf8.sql</file>
        </sql>
    </install>
    <uninstall>
        <sql>
            <file driver="mysql" charset="utf8">sql/uninstall.mysql.utf8.sql</file>
        </sql>
    </uninstall>
    <files folder="site">
        <filename>index.php</filename>
        <folder>views</folder>
    </files>
    <languages folder="site">
        <language tag="en-GB">language/en-GB/en-GB.com_events.ini</language>
    </languages>
    <media destination="com_events" folder="media">
        <folder>css</folder>
        <filename>js/events.js</filename>
    </media>
    <administration>
        <menu>COM_EVENTS</menu>
        <files folder="admin">
            <filename>events.php</filename>
            <folder>sql</folder>
        </files>
        <languages folder="admin">
            <language tag="en-GB">language/en-GB/en-GB.com_events.ini</language>
            <language tag="en-GB">language/en-GB/en-GB.com_events.sys.ini</language>
        </languages>
    </administration>
</extension>
"""

MODULE_MANIFEST = """<?xml version="1.0" encoding="utf-8"?>
<extension type="module" version="3.0" client="site" method="upgrade">
    <name>News</name>
    <author>News Team</author>
    <creationDate>2021-05-01</creationDate>
    <copyright>(C) 2021 Example</copyright>
    <license>GPL-2.0-or-later</license>
    <authorEmail>news@example.com</authorEmail>
    <authorUrl>https://example.com</authorUrl>
    <version>2.0.1</version>
    <description>MOD_NEWS_DESCRIPTION</description>
    <files>
        <filename module="mod_news">mod_news.php</filename>
        <folder>tmpl</folder>
    </files>
    <languages folder="site">
        <language tag="en-GB">en-GB.mod_news.ini</language>
    </languages>
</extension>
"""

PACKAGE_MANIFEST = """<?xml version="1.0" encoding="utf-8"?>
<extension type="package" version="3.0" method="upgrade">
    <name>Bundle</name>
    <packagename>bundle</packagename>
    <author>Bundle Team</author>
    <authorEmail>bundle@example.com</authorEmail>
    <authorUrl>https://example.com</authorUrl>
    <copyright>(C) 2022 Example</copyright>
    <creationDate>2022-02-02</creationDate>
    <description>A bundle</description>
    <license>GPL-2.0-or-later</license>
    <version>3.0.0</version>
    <files folder="packages">
        <file type="component" id="events">com_events.zip</file>
        <file type="module" id="news" client="site">mod_news.zip</file>
    </files>
</extension>
"""

INSTALL_SQL = """CREATE TABLE IF NOT EXISTS `#__events` (
  `id` int NOT NULL AUTO_INCREMENT,
  PRIMARY KEY (`id`)
);
CREATE TABLE `#__event_types` (`id` int);
"""

UNINSTALL_SQL = "DROP TABLE IF EXISTS `#__events`;\nDROP TABLE IF EXISTS `#__event_types`;\n"

INSTALLATION_FILES = {
    # component, administrator side
    "administrator/components/com_events/events.xml": COMPONENT_MANIFEST,
    "administrator/components/com_events/script.php": "<?php\n// COM_EVENTS_MENU\n",
    "administrator/components/com_events/events.php": "<?php\necho Text::_('COM_EVENTS_TITLE'); // COM_EVENTS_MISSING\n",
    "administrator/components/com_events/sql/install.mysql.utf8.sql": INSTALL_SQL,
    "administrator/components/com_events/sql/uninstall.mysql.utf8.sql": UNINSTALL_SQL,
    "administrator/language/en-GB/en-GB.com_events.ini": (
        "; Events administrator strings\n"
        'COM_EVENTS="Events"\n'
        'COM_EVENTS_TITLE="Event title"\n'
        'COM_EVENTS_UNUSED="Never used"\n'
        "\n"
        'COM_EVENTS_DESCRIPTION="An events component"\n'
    ),
    "administrator/language/en-GB/en-GB.com_events.sys.ini": 'COM_EVENTS_MENU="Events"\n',
    # component, site side
    "components/com_events/index.php": "<?php\necho Text::_('COM_EVENTS_LIST');\n",
    "components/com_events/views/list/default.php": "<?php // list layout\n",
    "components/com_events/views/list/view.html.php": "<?php class EventsViewList {}\n",
    "components/com_events/views/item/default.php": (
        "<?php\n"
        "echo Text::_('COM_EVENTS_ITEM');\n"
        "echo Text::_('COM_EVENTS_NOPE');\n"
    ),
    "language/en-GB/en-GB.com_events.ini": (
        'COM_EVENTS_LIST="List"\n'
        'COM_EVENTS_ITEM="Item"\n'
        'COM_EVENTS_SITE_UNUSED="Unused"\n'
    ),
    "media/com_events/css/events.css": "body { color: black; }\n",
    "media/com_events/js/events.js": "console.log('events');\n",
    # module
    "modules/mod_news/mod_news.xml": MODULE_MANIFEST,
    "modules/mod_news/mod_news.php": "<?php\necho Text::_('MOD_NEWS_TITLE');\n",
    "modules/mod_news/tmpl/default.php": "<?php // default layout\n",
    "language/en-GB/en-GB.mod_news.ini": 'MOD_NEWS_TITLE="News"\nMOD_NEWS_DESCRIPTION="Latest news"\n',
    # package
    "administrator/manifests/packages/pkg_bundle.xml": PACKAGE_MANIFEST,
}


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Create ``files`` (relative path -> text) below ``root``."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def web_root(tmp_path: Path) -> Path:
    """A web root holding com_events, mod_news and pkg_bundle."""
    return write_tree(tmp_path / "site", INSTALLATION_FILES)


@pytest.fixture
def installation(web_root: Path) -> Installation:
    return Installation(name="test site", web_root=str(web_root))


@pytest.fixture
def backend() -> LocalBackend:
    return LocalBackend()


@pytest.fixture
def component_manifest_path(web_root: Path) -> str:
    return str(web_root / "administrator/components/com_events/events.xml")


class FakeClock:
    """Manually advanced time source for Progress."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
