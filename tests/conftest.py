import sys
from contextlib import contextmanager
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeTx:
    """Stands in for ecod_pg.db_adapter.Transaction, answering from canned rows."""

    def __init__(self, adapter):
        self.adapter = adapter
        self.rowcount = 0

    def run(self, query, params=None):
        sql = " ".join(query.split())
        self.adapter.calls.append((sql, params))
        rows = self.adapter.lookup(sql, params)
        self.rowcount = len(rows)
        return [dict(r) for r in rows]

    def single(self, query, params=None):
        rows = self.run(query, params)
        return rows[0] if rows else None

    def execute(self, query, params=None):
        self.run(query, params)
        return self.rowcount


class FakeSession:
    def __init__(self, adapter):
        self.adapter = adapter

    def execute_read(self, work):
        self.adapter.transactions.append("read")
        return work(FakeTx(self.adapter))

    def execute_write(self, work):
        self.adapter.transactions.append("write")
        return work(FakeTx(self.adapter))


class FakeAdapter:
    """
    Register responses by SQL fragment; the first fragment found in a
    statement decides its rows. Unmatched statements return no rows.
    """

    def __init__(self):
        self.responses = []
        self.calls = []
        self.transactions = []

    def on(self, fragment, rows):
        self.responses.append((" ".join(fragment.split()), rows))
        return self

    def lookup(self, sql, params):
        for fragment, rows in self.responses:
            if fragment in sql:
                return rows(params) if callable(rows) else rows
        return []

    def sql_matching(self, fragment):
        return [(sql, params) for sql, params in self.calls if fragment in sql]

    @contextmanager
    def session(self):
        yield FakeSession(self)

    def ping(self):
        return True


@pytest.fixture
def fake_adapter():
    return FakeAdapter()


MMCIF = """data_TEST
_entry.id TEST
#
loop_
_atom_site.group_PDB
_atom_site.id
_atom_site.type_symbol
_atom_site.label_atom_id
_atom_site.label_alt_id
_atom_site.label_comp_id
_atom_site.label_asym_id
_atom_site.label_entity_id
_atom_site.label_seq_id
_atom_site.pdbx_PDB_ins_code
_atom_site.Cartn_x
_atom_site.Cartn_y
_atom_site.Cartn_z
_atom_site.occupancy
_atom_site.B_iso_or_equiv
_atom_site.pdbx_formal_charge
_atom_site.auth_seq_id
_atom_site.auth_comp_id
_atom_site.auth_asym_id
_atom_site.auth_atom_id
_atom_site.pdbx_PDB_model_num
ATOM   1  N N  . MET A 1 1 ? 10.000 10.000 10.000 1.00 20.00 ? 10 MET A N  1
ATOM   2  C CA . MET A 1 1 ? 11.400 10.000 10.000 1.00 20.00 ? 10 MET A CA 1
ATOM   3  N N  . LYS A 1 2 ? 12.000 11.200 10.000 1.00 20.00 ? 11 LYS A N  1
ATOM   4  C CA . LYS A 1 2 ? 13.400 11.200 10.000 1.00 20.00 ? 11 LYS A CA 1
ATOM   5  N N  . GLY A 1 3 ? 14.000 12.400 10.000 1.00 20.00 ? 12 GLY A N  1
ATOM   6  C CA . GLY A 1 3 ? 15.400 12.400 10.000 1.00 20.00 ? 12 GLY A CA 1
ATOM   7  N N  . SER A 1 4 ? 16.000 13.600 10.000 1.00 20.00 ? 13 SER A N  1
ATOM   8  C CA . SER A 1 4 ? 17.400 13.600 10.000 1.00 20.00 ? 13 SER A CA 1
ATOM   9  N N  . LEU A 1 5 ? 18.000 14.800 10.000 1.00 20.00 ? 14 LEU A N  1
ATOM   10 C CA . LEU A 1 5 ? 19.400 14.800 10.000 1.00 20.00 ? 14 LEU A CA 1
ATOM   11 N N  . ALA B 2 1 ? 30.000 30.000 30.000 1.00 20.00 ? 10 ALA B N  1
ATOM   12 C CA . ALA B 2 1 ? 31.400 30.000 30.000 1.00 20.00 ? 10 ALA B CA 1
HETATM 13 O O  . HOH C 3 . ? 40.000 40.000 40.000 1.00 30.00 ? 11 HOH A O  1
#
"""

DOMAIN_SUMMARY_XML = """<?xml version="1.0"?>
<blast_summ_doc>
  <blast_summ pdb="5c3l" chain="B"/>
  <chain_blast_run program="blastp">
    <hits>
      <hit num="1" pdb_id="1abc" chain_id="A" hsp_count="1" evalues="1e-50">
        <query_reg>1-180</query_reg>
        <hit_reg>1-180</hit_reg>
      </hit>
    </hits>
  </chain_blast_run>
  <blast_run program="blastp">
    <hits>
      <hit domain_id="e1abcA1" pdb_id="1abc" chain_id="A" hsp_count="1" evalues="1e-20">
        <query_reg>10-100</query_reg>
        <hit_reg>5-95</hit_reg>
      </hit>
      <hit domain_id="e2xyzA1" pdb_id="2xyz" chain_id="A" evalues="0.5">
        <query_reg>150-165</query_reg>
        <hit_reg>1-16</hit_reg>
      </hit>
      <hit pdb_id="9zzz" chain_id="A" evalues="1e-10">
        <query_reg>1-50</query_reg>
        <hit_reg>1-50</hit_reg>
      </hit>
    </hits>
  </blast_run>
  <hh_run program="hhsearch">
    <hits>
      <hit hit_id="e3defB1" ecod_domain_id="e3defB1" probability="98.5" evalue="1e-30" score="120.5">
        <query_reg>105-190</query_reg>
        <hit_reg>2-87</hit_reg>
      </hit>
    </hits>
  </hh_run>
</blast_summ_doc>
"""


@pytest.fixture
def mmcif_text():
    return MMCIF


@pytest.fixture
def domain_summary_xml():
    return DOMAIN_SUMMARY_XML
