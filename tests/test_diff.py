from hypothesis import assume, given, strategies as st

from utils.form_validation import REGISTRATION_FIELDS, canonical_value
from utils.reconciler import FILE_COLUMNS, SCALAR_COLUMNS, compute_diff

REQUIRED = {spec.column: spec.required for spec in REGISTRATION_FIELDS}
OPTIONAL_COLUMNS = [col for col in SCALAR_COLUMNS if not REQUIRED[col]]

BASELINE = {
    "nome_agente": "Ana",
    "whatsapp": "11999999999",
    "nome_produto": "Curso X",
    "link_pagina_vendas": "https://x.com",
    "descricao_produto": "desc longa o bastante",
    "checkout_01": "https://pay.com/1",
    "checkout_02": None,
    "checkout_03": "https://pay.com/3",
    "checkout_04": None,
    "checkout_05": None,
    "link_instagram": None,
    "videos_depoimento": [],
    "imagens_produto": ["https://cdn/a.png", "https://cdn/b.png"],
    "imagens_prova_social": [],
    "documentos_complementares": ["https://cdn/doc.pdf"],
}

urls = st.lists(st.text(min_size=1, max_size=20), max_size=6)
padding = st.text(alphabet=" \t\n", max_size=3)


@given(column=st.sampled_from(FILE_COLUMNS), data=st.data(), files=urls)
def test_file_permutation_is_not_a_change(column, data, files):
    shuffled = data.draw(st.permutations(files))
    baseline = dict(BASELINE, **{column: files})
    assert compute_diff(baseline, dict(baseline, **{column: shuffled})) == {}


@given(column=st.sampled_from(SCALAR_COLUMNS), value=st.text(max_size=30), left=padding, right=padding)
def test_surrounding_whitespace_is_not_a_change(column, value, left, right):
    baseline = dict(BASELINE, **{column: value})
    assert compute_diff(baseline, dict(baseline, **{column: f"{left}{value}{right}"})) == {}


@given(column=st.sampled_from(OPTIONAL_COLUMNS), blank=padding, reverse=st.booleans())
def test_empty_optional_equals_none(column, blank, reverse):
    with_blank = dict(BASELINE, **{column: blank})
    with_none = dict(BASELINE, **{column: None})
    old, new = (with_none, with_blank) if reverse else (with_blank, with_none)
    assert compute_diff(old, new) == {}


@given(column=st.sampled_from(SCALAR_COLUMNS), value=st.text(max_size=30))
def test_single_scalar_change_is_reported_alone(column, value):
    required = REQUIRED[column]
    assume(canonical_value(value, required) != canonical_value(BASELINE[column], required))

    diff = compute_diff(BASELINE, dict(BASELINE, **{column: value}))

    assert list(diff) == [column]
    assert diff[column] == canonical_value(value, required)
