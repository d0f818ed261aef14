import json

import pytest
import yaml

from worldgen.pipeline import DEFAULT_WORLD, GenerationConfig, default_config, load_config
from worldgen.scatter.rules import Placement


def test_mapping_builds_catalog_and_rules(small_config):
    catalog = small_config.catalog
    assert catalog.types() == ["meadow", "crag"]
    assert catalog.texture_layers == ("grass", "rock")
    crag = catalog.get("crag")
    assert crag.base_layer == 1
    assert crag.vegetation[0].layer == 1
    (bush,) = crag.scatters
    assert bush.rule.object_key == "bush"
    assert bush.rule.use_clustering
    assert bush.placement is Placement.ANY


def test_defaults_are_applied(small_config):
    assert small_config.seed == 42
    assert small_config.blend_aware_sampling is False
    assert small_config.global_noise.enabled is False
    assert small_config.log_dir is None
    assert small_config.run_id.startswith("run-")


def test_yaml_and_json_files_agree(world_mapping, tmp_path):
    world_mapping["run_id"] = "fixed"
    yaml_path = tmp_path / "world.yaml"
    yaml_path.write_text(yaml.safe_dump(world_mapping), encoding="utf8")
    json_path = tmp_path / "world.json"
    json_path.write_text(json.dumps(world_mapping), encoding="utf8")

    from_yaml = load_config(yaml_path)
    from_json = GenerationConfig.from_file(json_path)
    assert from_yaml.to_dict() == from_json.to_dict()


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")


def test_file_must_hold_a_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf8")
    with pytest.raises(TypeError):
        load_config(path)


@pytest.mark.parametrize(
    "mutate, message",
    [
        (lambda m: m["biomes"]["meadow"].update(scatter=["willow"]), "unknown scatter rule"),
        (lambda m: m["biomes"]["meadow"].update(base_layer="snow"), "unknown texture layer"),
        (lambda m: m["scatter_rules"]["tree"].update(children=["ghost"]), "unknown child rule"),
        (lambda m: m["biomes"]["crag"]["scatter"].append({"rule": "tree", "placement": "roof"}), "placement"),
        (lambda m: m["scatter_rules"]["tree"].update(slope_range=[40, 10]), "greater than max"),
        (lambda m: m["biomes"]["meadow"]["vegetation"].append({"density": 0.5}), "need a 'layer'"),
        (lambda m: m["biomes"]["meadow"]["vegetation"][0].update(edge_falloff=2.0), "edge_falloff"),
        (lambda m: m["biomes"]["meadow"]["vegetation"][0].update(height_range=[9, 3]), "inverted"),
        (lambda m: m["biomes"]["crag"].update(is_water_body=True, water_depth=-1.0), "water_depth"),
        (lambda m: m.update(rivers={"width": 0.0}), "River width"),
    ],
)
def test_bad_references_are_rejected(world_mapping, mutate, message):
    mutate(world_mapping)
    with pytest.raises(ValueError, match=message):
        GenerationConfig.from_mapping(world_mapping)


def test_cell_range_is_checked(world_mapping):
    world_mapping.update(min_cells=5, max_cells=2)
    with pytest.raises(ValueError):
        GenerationConfig.from_mapping(world_mapping)


def test_biome_list_form(world_mapping):
    world_mapping["biomes"] = [dict(name=name, **entry) for name, entry in world_mapping["biomes"].items()]
    config = GenerationConfig.from_mapping(world_mapping)
    assert config.catalog.types() == ["meadow", "crag"]


def test_global_noise_section(world_mapping):
    world_mapping["global_noise"] = {"amplitude": 3.0}
    config = GenerationConfig.from_mapping(world_mapping)
    assert config.global_noise.enabled
    assert config.global_noise.amplitude == 3.0


def test_run_log_path_uses_run_id(small_config, tmp_path):
    small_config.log_dir = tmp_path
    small_config.run_id = "abc"
    assert small_config.run_log_path() == (tmp_path / "abc.jsonl").resolve()


def test_default_world_is_usable():
    config = default_config(seed=7)
    assert config.seed == 7
    assert len(config.catalog) == len(DEFAULT_WORLD["biomes"])
    oak = config.catalog.get("forest").scatters[0].rule
    assert oak.children[0].rule.object_key == "mushroom"

    report = config.catalog.validate(100.0, config.blend_width, config.water_level)
    assert report.is_valid, report.errors


def test_catalog_validation_flags_steep_transitions(world_mapping):
    world_mapping["biomes"]["crag"]["base_height"] = 60.0
    config = GenerationConfig.from_mapping(world_mapping)
    report = config.catalog.validate(100.0, config.blend_width)
    assert not report.is_valid
    assert any("transition slope" in error for error in report.errors)


def test_catalog_validation_warns_about_height(small_config):
    report = small_config.catalog.validate(9.0, small_config.blend_width)
    assert any("exceeds terrain height" in warning for warning in report.warnings)


def test_rivers_section(world_mapping, small_config):
    assert small_config.rivers.enabled is False
    world_mapping["rivers"] = {"width": 4.0, "depth": 1.5, "border_chance": 0.4}
    config = GenerationConfig.from_mapping(world_mapping)
    assert config.rivers.enabled
    assert config.rivers.width == 4.0
    assert config.to_dict()["rivers"]["border_chance"] == 0.4


def test_water_body_and_vegetation_modifiers_parse(world_mapping):
    world_mapping["biomes"]["lake"] = {"is_water_body": True, "water_depth": 5.0, "shore_steepness": 0.2}
    world_mapping["biomes"]["meadow"]["vegetation"] = [
        {
            "layer": 0,
            "density": 0.6,
            "noise": {"frequency": 0.2, "octaves": 2},
            "noise_threshold": 0.3,
            "slope_falloff": 35,
            "height_range": [2, 12],
            "edge_falloff": 0.5,
        }
    ]
    config = GenerationConfig.from_mapping(world_mapping)
    lake = config.catalog.get("lake")
    assert lake.is_water_body
    assert lake.water_depth == 5.0
    assert lake.shore_steepness == 0.2
    (layer,) = config.catalog.get("meadow").vegetation
    assert layer.noise.frequency == 0.2
    assert layer.noise_threshold == 0.3
    assert layer.slope_falloff == 35.0
    assert layer.height_range == (2.0, 12.0)
    assert layer.edge_falloff == 0.5
    assert layer.uses_terrain


def test_catalog_validation_water_bodies(world_mapping):
    world_mapping["biomes"]["lake"] = {"is_water_body": True, "base_height": 90.0}
    config = GenerationConfig.from_mapping(world_mapping)
    dry = config.catalog.validate(100.0, config.blend_width, water_level=0.0)
    assert any("positive water_level" in warning for warning in dry.warnings)
    # water bodies take no part in transition slope checks
    assert dry.is_valid, dry.errors
    wet = config.catalog.validate(100.0, config.blend_width, water_level=4.0)
    assert not any(warning.startswith("lake:") and "water" in warning for warning in wet.warnings)
