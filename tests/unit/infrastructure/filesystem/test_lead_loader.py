import json

import pytest

from leadsight.domain.models.errors import LeadFileError
from leadsight.infrastructure.filesystem.lead_loader import load_leads


def test_loads_json_array(tmp_path):
    path = tmp_path / "leads.json"
    path.write_text(json.dumps([
        {"name": "Ada", "role": "CTO", "company": "Acme", "extra": "ignored"},
        {"role": "no name"},
        "not an object",
    ]), encoding="utf-8")

    leads = load_leads(path)

    assert leads == [{"name": "Ada", "role": "CTO", "company": "Acme"}]


def test_loads_csv_with_aliases_and_bom(tmp_path):
    path = tmp_path / "leads.csv"
    path.write_text(
        "\ufeffFull Name,Job Title,Company Name,Location\n"
        "Grace Hopper,Rear Admiral,US Navy,Arlington\n"
        ",Nobody,Empty,\n",
        encoding="utf-8",
    )

    leads = load_leads(path)

    assert leads == [{
        "name": "Grace Hopper", "role": "Rear Admiral", "company": "US Navy", "location": "Arlington",
    }]


def test_rejects_unsupported_suffix(tmp_path):
    path = tmp_path / "leads.xlsx"
    path.write_bytes(b"")
    with pytest.raises(LeadFileError, match="Unsupported file type"):
        load_leads(path)


def test_rejects_json_object(tmp_path):
    path = tmp_path / "leads.json"
    path.write_text('{"name": "Ada"}', encoding="utf-8")
    with pytest.raises(LeadFileError, match="array"):
        load_leads(path)


def test_rejects_malformed_json(tmp_path):
    path = tmp_path / "leads.json"
    path.write_text("[{", encoding="utf-8")
    with pytest.raises(LeadFileError, match="Could not read"):
        load_leads(path)


def test_rejects_file_without_valid_rows(tmp_path):
    path = tmp_path / "leads.csv"
    path.write_text("role,company\nCTO,Acme\n", encoding="utf-8")
    with pytest.raises(LeadFileError, match="No valid prospect data"):
        load_leads(path)
