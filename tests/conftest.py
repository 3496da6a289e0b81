"""
Test fixtures shared across all LoopGuard tests.
"""

import pytest


@pytest.fixture
def sample_php_code():
    """PHP code with one instance of every loop defect the engine reports."""
    return '''<?php

class Repository
{
    public function getItems()
    {
        return $this->getItems();
    }

    public function firstOnly(array $rows)
    {
        foreach ($rows as $row) {
            return $row;
        }
    }

    public function grid($rows)
    {
        foreach ($rows as $row) {
            foreach ($row as $cell) {
                $cells[] = $cell;
            }
        }
        return $cells;
    }

    public function scan($item, $limit)
    {
        for ($i = 0; $i < 10, $i < $limit; $i++) {
            foreach ($this->load() as $item) {
                echo $item;
            }
        }
    }

    private function load(): array
    {
        return [];
    }
}
'''


@pytest.fixture
def clean_php_code():
    """PHP code with no loop defects."""
    return '''<?php

function numbers()
{
    yield 1;
    yield 2;
}

function first()
{
    foreach (numbers() as $n) {
        return $n;
    }
}

function sum(array $values)
{
    $total = 0;
    foreach ($values as $value) {
        $total += $value;
    }
    return $total;
}

function table(array $rows)
{
    $out = [];
    foreach ($rows as $row) {
        for ($i = 0; $i < count($row); $i++) {
            $out[] = $row[$i];
        }
    }
    return $out;
}
'''


@pytest.fixture
def sample_files(sample_php_code):
    """Sample file inputs for API testing."""
    from loopguard.models.scan_models import FileInput
    return [FileInput(path="Repository.php", content=sample_php_code)]
