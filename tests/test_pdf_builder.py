import base64
from io import BytesIO

from PIL import Image

from socially import StoryPackage, StorybookPDFBuilder, StoryRequest
from socially.pdf_generation import PAGE_SIZES
from socially.story_generation import Panel, StoryPage


def _png_data_uri(color=(99, 102, 241)) -> str:
    buffer = BytesIO()
    Image.new("RGB", (64, 36), color).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def _package() -> StoryPackage:
    request = StoryRequest(
        child_name="Sam",
        target_behavior="Waiting in line at the cafeteria",
        visual_description="red boots",
        interests=("trains",),
    )
    pages = [
        StoryPage(text="I go to lunch <with> my class & friends.", image_prompt="p", image_url=_png_data_uri()),
        StoryPage(
            text="I can choose\nwhat to eat.",
            layout="grid",
            panels=[
                Panel(image_prompt="apple", caption="An apple", image_url=_png_data_uri((200, 30, 30))),
                Panel(image_prompt="milk", caption="Milk"),
                Panel(image_prompt="bread"),
                Panel(image_prompt="soup", caption="Soup", image_url="data:image/png;base64,not-base64!"),
            ],
        ),
        StoryPage(text="The line moves slowly.", image_prompt="p"),
    ]
    return StoryPackage(request=request, run_id="2026-10-18_14-03-27-512", pages=pages)


def test_build_bytes_produces_pdf():
    pdf_bytes = StorybookPDFBuilder().build_bytes(_package())

    assert pdf_bytes.startswith(b"%PDF")
    assert pdf_bytes.rstrip().endswith(b"%%EOF")


def test_build_writes_file_for_each_page_size(tmp_path):
    for name, size in PAGE_SIZES.items():
        output = tmp_path / "out" / f"{name}.pdf"

        StorybookPDFBuilder(page_size=size, margin_mm=10).build(_package(), output)

        assert output.read_bytes().startswith(b"%PDF")


def test_build_from_yaml_round_trips_package(tmp_path):
    package_path = tmp_path / "story.yaml"
    package_path.write_text(_package().to_yaml(), encoding="utf-8")
    output = tmp_path / "story.pdf"

    StorybookPDFBuilder().build_from_yaml(package_path, output)

    assert output.stat().st_size > 0


def test_images_are_decoded_once_and_bad_ones_skipped():
    builder = StorybookPDFBuilder()
    uri = _png_data_uri()

    first = builder._fetch_image(uri)

    assert first is not None
    assert builder._fetch_image(uri) is first
    assert builder._fetch_image("data:image/png;base64,not-base64!") is None
