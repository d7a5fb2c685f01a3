"""Shared fixtures: a small Maven project and a matching JaCoCo report."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path

CALCULATOR_SOURCE = """\
package com.example;

public class Calculator {
    private int total;

    public Calculator() {
        this.total = 0;
    }

    public int add(int a, int b) {
        return a + b;
    }

    public int divide(int a, int b) {
        if (b == 0) {
            throw new IllegalArgumentException("b must not be zero");
        }
        return a / b;
    }

    public boolean isPositive(int value) {
        return value > 0;
    }

    @Override
    public String toString() {
        return "Calculator" + total;
    }
}
"""

# add: 1/1 lines, no branches -> 100% / 100%
# divide: 1/3 lines, 0/2 branches -> 33.3% / 0%
# isPositive: 0/1 lines, 0/2 branches -> 0% / 0%
CALCULATOR_JACOCO_XML = """\
<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<report name="calculator">
  <package name="com/example">
    <class name="com/example/Calculator" sourcefilename="Calculator.java">
      <method name="&lt;init&gt;" desc="()V" line="6">
        <counter type="INSTRUCTION" missed="0" covered="6"/>
        <counter type="LINE" missed="0" covered="3"/>
      </method>
      <method name="&lt;clinit&gt;" desc="()V" line="1">
        <counter type="LINE" missed="1" covered="0"/>
      </method>
      <method name="add" desc="(II)I" line="11">
        <counter type="INSTRUCTION" missed="0" covered="4"/>
        <counter type="LINE" missed="0" covered="1"/>
      </method>
      <method name="divide" desc="(II)I" line="15">
        <counter type="INSTRUCTION" missed="8" covered="4"/>
        <counter type="BRANCH" missed="2" covered="0"/>
        <counter type="LINE" missed="2" covered="1"/>
      </method>
      <method name="isPositive" desc="(I)Z" line="22">
        <counter type="INSTRUCTION" missed="7" covered="0"/>
        <counter type="BRANCH" missed="2" covered="0"/>
        <counter type="LINE" missed="1" covered="0"/>
      </method>
      <counter type="INSTRUCTION" missed="15" covered="14"/>
      <counter type="BRANCH" missed="4" covered="0"/>
      <counter type="LINE" missed="3" covered="5"/>
    </class>
  </package>
  <counter type="INSTRUCTION" missed="15" covered="14"/>
  <counter type="BRANCH" missed="4" covered="0"/>
  <counter type="LINE" missed="3" covered="5"/>
  <counter type="METHOD" missed="1" covered="3"/>
  <counter type="CLASS" missed="0" covered="1"/>
</report>
"""

# calc(II): 2/2 lines; calc(DD): 1/4 lines; lambda$run$0 is compiler-generated
OVERLOADED_JACOCO_XML = """\
<?xml version="1.0" encoding="UTF-8"?>
<report name="mixer">
  <package name="com/example">
    <class name="com/example/Mixer" sourcefilename="Mixer.java">
      <method name="calc" desc="(II)I" line="5">
        <counter type="LINE" missed="0" covered="2"/>
      </method>
      <method name="calc" desc="(DD)D" line="9">
        <counter type="LINE" missed="3" covered="1"/>
        <counter type="BRANCH" missed="2" covered="0"/>
      </method>
      <method name="run" desc="()V" line="15">
        <counter type="LINE" missed="0" covered="1"/>
      </method>
      <method name="lambda$run$0" desc="(Ljava/lang/String;)V" line="16">
        <counter type="LINE" missed="1" covered="0"/>
      </method>
      <counter type="LINE" missed="4" covered="4"/>
    </class>
  </package>
</report>
"""

SOURCE_REL = "src/main/java/com/example/Calculator.java"
TEST_REL = "src/test/java/com/example/CalculatorTest.java"
REPORT_REL = "target/site/jacoco/jacoco.xml"


def write_file(root: Path, rel: str, content: str) -> Path:
    """Write *content* to a file under *root*, creating parent directories."""
    f = root / rel
    f.parent.mkdir(parents=True, exist_ok=True)
    f.write_text(content, encoding="utf-8")
    return f


@pytest.fixture()
def maven_project(tmp_path: Path) -> Path:
    """A Maven project with one source class and no tests yet."""
    write_file(tmp_path, "pom.xml", "<project><artifactId>calculator</artifactId></project>\n")
    write_file(tmp_path, SOURCE_REL, CALCULATOR_SOURCE)
    return tmp_path


@pytest.fixture()
def jacoco_project(maven_project: Path) -> Path:
    """``maven_project`` plus a JaCoCo report for ``Calculator``."""
    write_file(maven_project, REPORT_REL, CALCULATOR_JACOCO_XML)
    return maven_project
