"""Pytest fixtures for merge tests."""

from types import SimpleNamespace

import pytest

from familytree.graph.tree import FamilyTree
from familytree.models import AddMemberData, Gender


def _person(name, gender=Gender.MALE):
    return AddMemberData(name=name, gender=gender)


@pytest.fixture
def overlapping_trees():
    """
    Two in-memory trees of the same person, built one after the other.

    Source (built first):
        Olim + Salima -> Karim, Sardor
        Karim + Zuhra -> Aziz (root), Dilnoza, Ali
    Target:
        Olim + Salima -> Karim
        Karim + Zuhra -> Aziz (root), Dilnoza, Jasur
    """
    source = FamilyTree("user-1")
    s_root, _ = source.add_initial_couple()
    source.update_member(s_root, name="Aziz")
    s_father, s_mother = source.add_parents(s_root, _person("Karim"), _person("Zuhra", Gender.FEMALE))
    s_dilnoza = source.add_child(s_father, _person("Dilnoza", Gender.FEMALE))
    s_ali = source.add_child(s_father, _person("Ali"))
    s_grandfather, s_grandmother = source.add_parents(s_father, _person("Olim"), _person("Salima", Gender.FEMALE))
    s_sardor = source.add_child(s_grandfather, _person("Sardor"))

    target = FamilyTree("user-2")
    t_root, _ = target.add_initial_couple()
    target.update_member(t_root, name="Aziz")
    t_father, t_mother = target.add_parents(t_root, _person("Karim aka"), _person("Zuhra", Gender.FEMALE))
    t_dilnoza = target.add_child(t_father, _person("Dilnoza", Gender.FEMALE))
    t_jasur = target.add_child(t_father, _person("Jasur"))
    t_grandfather, t_grandmother = target.add_parents(t_father, _person("Olim"), _person("Salima", Gender.FEMALE))

    return SimpleNamespace(
        source=source, target=target,
        s_root=s_root, s_father=s_father, s_mother=s_mother,
        s_dilnoza=s_dilnoza, s_ali=s_ali, s_sardor=s_sardor,
        s_grandfather=s_grandfather, s_grandmother=s_grandmother,
        t_root=t_root, t_father=t_father, t_mother=t_mother,
        t_dilnoza=t_dilnoza, t_jasur=t_jasur,
        t_grandfather=t_grandfather, t_grandmother=t_grandmother,
    )
