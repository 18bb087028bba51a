"""Tests for sidebar generation and rendering."""

import json
import logging

import pytest

from o2d.indexer import build_index
from o2d.logger import StatusLogger
from o2d.models import CategoryNode, DocumentNode, ExternalRefNode
from o2d.sidebar import (
    INTRO_GROUP,
    SidebarGenerator,
    build_navbar_items,
    detect_index_doc,
    document_label,
    folder_label,
    is_generic_title,
    load_crosslinks,
    render_sidebars_json,
    render_sidebars_ts,
    sidebars_to_dict,
    sort_key,
    write_sidebars,
)

SITE = {
    "index.md": "---\ntitle: Home\nsidebar_position: 1\n---\n# Home\n",
    "about.md": "---\ntitle: About\n---\n",
    "Guides/index.md": "---\ntitle: Guides\n---\n",
    "Guides/Setup.md": "---\nsidebar_position: 2\n---\n",
    "Guides/Install.md": "---\nsidebar_position: 1\n---\n",
    "Guides/Advanced/Tuning.md": "",
    "Reference/index.md": "---\ntitle: Reference\n---\n",
    "assets/logo.svg": "<svg/>",
}


@pytest.fixture
def site_groups(make_vault, make_config):
    make_vault(SITE)
    config = make_config()
    return SidebarGenerator(build_index(config), config).build()


def generator_for(make_vault, make_config, files, **overrides):
    make_vault(files)
    config = make_config(**overrides)
    return SidebarGenerator(build_index(config), config)


class TestBuild:
    """Tests for SidebarGenerator.build."""

    def test_group_per_top_level_folder(self, site_groups):
        """Intro first, then folders in position order; attachment-only folders are skipped."""
        assert list(site_groups) == [INTRO_GROUP, "Guides", "Reference"]

    def test_intro_lists_root_documents(self, site_groups):
        items = sidebars_to_dict(site_groups)[INTRO_GROUP]
        assert items == [
            {"type": "doc", "id": "index", "label": "Home"},
            {"type": "doc", "id": "about", "label": "About"},
        ]

    def test_top_level_folder_items(self, site_groups):
        """Index doc first, then categories, then the other documents by position."""
        items = sidebars_to_dict(site_groups)["Guides"]
        assert items == [
            {"type": "doc", "id": "guides/index", "label": "Guides"},
            {
                "type": "category",
                "label": "Advanced",
                "items": [{"type": "doc", "id": "guides/advanced/tuning", "label": "Tuning"}],
            },
            {"type": "doc", "id": "guides/install", "label": "Install"},
            {"type": "doc", "id": "guides/setup", "label": "Setup"},
        ]

    def test_index_only_folder_is_single_leaf(self, site_groups):
        assert site_groups["Reference"] == [DocumentNode(doc_id="reference/index", label="Reference", position=-1)]

    def test_category_links_to_its_index(self, make_vault, make_config):
        generator = generator_for(make_vault, make_config, {
            "Guides/a.md": "",
            "Guides/Deploy/README.md": "---\ntitle: Deploying\n---\n",
            "Guides/Deploy/Docker.md": "",
        })
        category = next(node for node in generator.build()["Guides"] if isinstance(node, CategoryNode))
        assert category.label == "Deploying"
        assert category.link_doc_id == "guides/deploy/readme"
        assert [child.doc_id for child in category.children] == ["guides/deploy/docker"]

    def test_empty_categories_are_dropped(self, make_vault, make_config):
        """A subfolder holding only attachments produces no category."""
        generator = generator_for(make_vault, make_config, {
            "Guides/a.md": "",
            "Guides/images/diagram.png": b"\x89PNG",
        })
        assert generator.build()["Guides"] == [DocumentNode(doc_id="guides/a", label="a", position=-1)]

    def test_ordering_by_position_then_natural_title(self, make_vault, make_config):
        generator = generator_for(make_vault, make_config, {
            "Steps/Step 10.md": "",
            "Steps/Step 2.md": "",
            "Steps/Last.md": "---\nsidebar_position: 5\n---\n",
            "Steps/First.md": "---\nsidebar_position: 0\n---\n",
        })
        labels = [node.label for node in generator.build()["Steps"]]
        assert labels == ["First", "Last", "Step 2", "Step 10"]

    def test_duplicate_keys_get_suffix(self, make_vault, make_config, caplog):
        """Two folders with the same label still get separate sidebars."""
        with caplog.at_level(logging.WARNING, logger="o2d"):
            generator = generator_for(make_vault, make_config, {
                "A/index.md": "---\ntitle: Docs\n---\n",
                "B/index.md": "---\ntitle: Docs\n---\n",
            })
            groups = generator.build()
        assert list(groups) == [INTRO_GROUP, "Docs", "Docs 2"]
        assert 'Sidebar key "Docs" is used more than once' in caplog.text

    def test_crosslinks_appended_to_intro(self, make_vault, make_config, tmp_path):
        links = tmp_path / "links.json"
        links.write_text(json.dumps([{"id": "guides/index", "label": "All guides"}]), encoding="utf-8")
        generator = generator_for(make_vault, make_config, {"index.md": "", "Guides/index.md": ""},
                                  crosslinks_path=links)
        intro = generator.build()[INTRO_GROUP]
        assert intro[-1] == ExternalRefNode(target="guides/index", label="All guides")
        assert intro[-1].to_sidebar_item() == {"type": "ref", "id": "guides/index", "label": "All guides"}


class TestLabels:
    """Tests for label and ordering helpers."""

    @pytest.mark.parametrize("title", ["Overview", "index", " README ", "Table of Contents", "intro", "", None])
    def test_generic_titles(self, title):
        assert is_generic_title(title)

    def test_specific_title_is_not_generic(self):
        assert not is_generic_title("Getting Started")

    def test_generic_folder_title_uses_slug(self, make_vault, make_config):
        make_vault({"api_reference/index.md": "---\ntitle: Overview\n---\n"})
        index = build_index(make_config())
        api = next(f for f in index.folders if f.source_name == "api_reference")
        assert folder_label(api) == "Api Reference"

    def test_generic_document_titles(self, make_vault, make_config):
        """Index files keep a generic title; other documents get their humanized slug."""
        make_vault({
            "Docs/index.md": "---\ntitle: Overview\n---\n",
            "Docs/getting-started.md": "---\ntitle: Introduction\n---\n",
        })
        index = build_index(make_config())
        labels = {r.file_name: document_label(r) for r in index.documents}
        assert labels == {"index.md": "Overview", "getting-started.md": "Getting Started"}

    def test_sort_key_puts_unset_positions_last(self):
        keys = [sort_key(-1, "A"), sort_key(3, "Z"), sort_key(0, "M")]
        assert sorted(keys) == [sort_key(0, "M"), sort_key(3, "Z"), sort_key(-1, "A")]


class TestDetectIndexDoc:
    """Tests for detect_index_doc."""

    def test_note_named_after_folder(self, make_vault, make_config):
        make_vault({"Guides/Guides.md": "", "Guides/other.md": ""})
        index = build_index(make_config())
        guides = next(f for f in index.folders if f.source_name == "Guides")
        assert detect_index_doc(guides, index.files_in(guides)).doc_id == "guides/guides"

    def test_no_index_doc(self, make_vault, make_config):
        make_vault({"Guides/one.md": "", "Guides/two.md": ""})
        index = build_index(make_config())
        guides = next(f for f in index.folders if f.source_name == "Guides")
        assert detect_index_doc(guides, index.files_in(guides)) is None


class TestCrosslinks:
    """Tests for load_crosslinks."""

    def test_missing_file(self, tmp_path):
        assert load_crosslinks(tmp_path / "none.json", StatusLogger()) == []

    def test_links_object(self, tmp_path):
        path = tmp_path / "links.json"
        path.write_text(json.dumps({"links": [{"id": "a", "label": "A"}, {"id": 3}]}), encoding="utf-8")
        assert load_crosslinks(path, StatusLogger()) == [ExternalRefNode(target="a", label="A")]

    def test_invalid_json_is_ignored(self, tmp_path, caplog):
        path = tmp_path / "links.json"
        path.write_text("{not json", encoding="utf-8")
        with caplog.at_level(logging.WARNING, logger="o2d"):
            assert load_crosslinks(path, StatusLogger()) == []
        assert "Failed to load intro cross-links" in caplog.text


class TestRendering:
    """Tests for sidebar output formats."""

    def test_typescript_module(self, site_groups):
        """Identifier keys are bare, other keys are quoted."""
        groups = dict(site_groups)
        groups["Getting Started"] = [DocumentNode(doc_id="x", label="X")]
        text = render_sidebars_ts(groups)
        assert "import type { SidebarsConfig } from '@docusaurus/plugin-content-docs';" in text
        assert "const sidebars: SidebarsConfig = {" in text
        assert "\n  Intro: [" in text
        assert '\n  "Getting Started": [' in text
        assert '"id": "guides/index"' not in text
        assert 'id: "guides/index"' in text
        assert text.endswith("export default sidebars;\n")

    def test_typescript_is_deterministic(self, site_groups):
        assert render_sidebars_ts(site_groups) == render_sidebars_ts(site_groups)

    def test_json_output(self, site_groups):
        assert json.loads(render_sidebars_json(site_groups)) == sidebars_to_dict(site_groups)

    def test_write_sidebars_picks_format_by_suffix(self, site_groups, tmp_path):
        json_path = write_sidebars(site_groups, tmp_path / "out" / "sidebars.json")
        ts_path = write_sidebars(site_groups, tmp_path / "out" / "sidebars.ts")
        assert json.loads(json_path.read_text(encoding="utf-8"))[INTRO_GROUP]
        assert ts_path.read_text(encoding="utf-8").startswith("//")

    def test_navbar_items(self, site_groups):
        items = build_navbar_items(site_groups)
        assert [item["sidebarId"] for item in items] == [INTRO_GROUP, "Guides", "Reference"]
        assert items[1] == {"type": "docSidebar", "sidebarId": "Guides", "position": "left", "label": "Guides"}


class TestDebugTree:
    """Tests for the docs tree dump."""

    def test_lists_folders_and_documents(self, make_vault, make_config):
        generator = generator_for(make_vault, make_config, SITE)
        tree = generator.render_debug_tree()
        assert tree.startswith("Root: ")
        assert '- [dir] Guides (final="guides", pos=10, key="guides")' in tree
        assert "  - [index] Guides (docId=guides/index, pos=auto, file=\"index.md\")" in tree
        assert 'docId=guides/install, pos=1, slug="install.md", file="Install.md"' in tree
