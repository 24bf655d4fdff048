"""
Emitter tests: every format must produce syntactically valid, ordered,
deterministic output from a validated graph.
"""
import ast
import json

import hcl2
import pytest

from iacforge.emitters import cloudformation, pulumi_python, pulumi_typescript, terraform
from iacforge.errors import EmissionError
from iacforge.graph.builder import build_graph


def _graph(*resources, provider="aws", **extra):
    doc = {"provider": provider, "resources": list(resources)}
    doc.update(extra)
    return build_graph(doc, provider)


def _compile(code):
    # compile, unlike ast.parse, rejects repeated keyword arguments
    return compile(code, "__main__.py", "exec")


def _res(name, rtype, /, deps=None, **props):
    r = {"type": rtype, "name": name, "properties": props}
    if deps:
        r["dependencies"] = deps
    return r


# Unmapped "quantum" referenced from a mapped instance
_UNMAPPED_REF = (
    _res("quantum", "exotic-service", qubits=42),
    _res("app", "instance", deps=["quantum"], subnet_id="quantum"),
)


# ------------------------------------------------------------------ Terraform
class TestTerraformEmitter:
    def test_scenario_parses(self, web_app_doc, tables):
        code, filename = terraform.emit(build_graph(web_app_doc, "aws"), tables)
        assert filename == "main.tf"
        parsed = hcl2.loads(code)
        assert len(parsed["resource"]) == 2

    def test_scenario_order_and_references(self, web_app_doc, tables):
        code, _ = terraform.emit(build_graph(web_app_doc, "aws"), tables)
        sg = code.index('resource "aws_security_group" "web_sg"')
        vm = code.index('resource "aws_instance" "web_instance"')
        assert sg < vm
        assert "vpc_security_group_ids = [aws_security_group.web_sg.id]" in code
        assert "depends_on = [aws_security_group.web_sg]" in code
        assert 'instance_type = "t3.micro"' in code

    def test_provider_blocks(self, web_app_doc, tables):
        code, _ = terraform.emit(build_graph(web_app_doc, "aws"), tables)
        assert 'source  = "hashicorp/aws"' in code
        assert 'provider "aws" {' in code
        assert "features {}" not in code

    def test_azure_provider_features(self, tables):
        code, _ = terraform.emit(_graph(provider="azure"), tables)
        assert 'provider "azurerm" {' in code
        assert "features {}" in code
        hcl2.loads(code)

    def test_rules_become_nested_blocks(self, web_app_doc, tables):
        code, _ = terraform.emit(build_graph(web_app_doc, "aws"), tables)
        assert "  ingress {" in code
        assert "    from_port = 80" in code
        assert "ingress = [" not in code

    def test_empty_graph(self, tables):
        code, filename = terraform.emit(_graph(), tables)
        assert filename == "main.tf"
        assert 'resource "' not in code
        hcl2.loads(code)

    def test_template_sequences_escaped(self, tables):
        graph = _graph(_res("vm", "instance", user_data='echo "${HOME}" %{x}\nexit'))
        code, _ = terraform.emit(graph, tables)
        assert 'user_data = "echo \\"$${HOME}\\" %%{x}\\nexit"' in code

    def test_unmapped_resource_fallback(self, tables):
        code, _ = terraform.emit(_graph(*_UNMAPPED_REF), tables)
        assert 'resource "terraform_data" "quantum" {' in code
        assert 'type = "exotic-service"' in code
        assert "qubits = 42" in code
        assert "subnet_id = terraform_data.quantum.id" in code
        hcl2.loads(code)

    def test_identifier_sanitizing(self, tables):
        code, _ = terraform.emit(_graph(_res("1st server", "instance")), tables)
        assert 'resource "aws_instance" "resource_1st_server"' in code
        assert "# 1st server (instance)" in code

    def test_identifier_collisions_suffixed(self, tables):
        code, _ = terraform.emit(_graph(_res("web-sg", "sg"), _res("web_sg", "sg")), tables)
        assert '"aws_security_group" "web_sg" {' in code
        assert '"aws_security_group" "web_sg_2" {' in code

    def test_network_and_security_header(self, three_tier_doc, tables):
        code, _ = terraform.emit(build_graph(three_tier_doc, "aws"), tables)
        assert "# Security: encryption: enabled" in code
        assert "# Security: public access: blocked" in code
        assert 'resource "aws_vpc" "main_vpc"' in code
        assert "vpc_id = aws_vpc.main_vpc.id" in code
        hcl2.loads(code)

    def test_key_collision_is_emission_error(self, tables):
        graph = _graph(_res("vm", "instance", instanceType="a", instance_type="b"))
        with pytest.raises(EmissionError) as exc:
            terraform.emit(graph, tables)
        assert exc.value.resource == "vm"
        assert exc.value.format == "terraform"


# ------------------------------------------------------------------ CloudFormation
class TestCloudFormationEmitter:
    def test_scenario(self, web_app_doc, tables):
        code, filename = cloudformation.emit(build_graph(web_app_doc, "aws"), tables)
        assert filename == "template.json"
        doc = json.loads(code)
        assert doc["AWSTemplateFormatVersion"] == "2010-09-09"
        assert list(doc["Resources"]) == ["WebSg", "WebInstance"]
        assert "Parameters" not in doc

    def test_resource_entries(self, web_app_doc, tables):
        doc = json.loads(cloudformation.emit(build_graph(web_app_doc, "aws"), tables)[0])
        vm = doc["Resources"]["WebInstance"]
        assert list(vm) == ["Type", "DependsOn", "Metadata", "Properties"]
        assert vm["Type"] == "AWS::EC2::Instance"
        assert vm["DependsOn"] == ["WebSg"]
        assert vm["Metadata"] == {"Name": "web-instance"}
        assert vm["Properties"]["ImageId"] == "ami-0c55b159cbfafe1f0"
        assert vm["Properties"]["InstanceType"] == "t3.micro"
        assert vm["Properties"]["SecurityGroupIds"] == [{"Ref": "WebSg"}]
        assert vm["Properties"]["Tags"] == {"Name": "web", "Tier": "frontend"}

    def test_nested_rule_fields_renamed(self, web_app_doc, tables):
        doc = json.loads(cloudformation.emit(build_graph(web_app_doc, "aws"), tables)[0])
        sg = doc["Resources"]["WebSg"]
        assert "DependsOn" not in sg
        assert sg["Properties"]["GroupDescription"] == "Allow HTTP from anywhere"
        rule = sg["Properties"]["SecurityGroupIngress"][0]
        assert rule["IpProtocol"] == "tcp"
        assert rule["FromPort"] == 80
        assert rule["ToPort"] == 80
        assert rule["CidrIp"] == "0.0.0.0/0"

    def test_empty_graph(self, tables):
        doc = json.loads(cloudformation.emit(_graph(), tables)[0])
        assert doc["Resources"] == {}

    def test_unmapped_custom_resource(self, tables):
        doc = json.loads(cloudformation.emit(_graph(*_UNMAPPED_REF), tables)[0])
        assert "UnmanagedResourceServiceToken" in doc["Parameters"]
        q = doc["Resources"]["Quantum"]
        assert q["Type"] == "Custom::ExoticService"
        assert q["Properties"]["ServiceToken"] == {"Ref": "UnmanagedResourceServiceToken"}
        assert q["Properties"]["OriginalType"] == "exotic-service"
        assert q["Properties"]["OriginalProperties"] == {"qubits": 42}
        assert doc["Resources"]["App"]["Properties"]["SubnetId"] == {"Ref": "Quantum"}

    def test_security_metadata(self, three_tier_doc, tables):
        doc = json.loads(cloudformation.emit(build_graph(three_tier_doc, "aws"), tables)[0])
        assert doc["Metadata"]["SecurityConfiguration"] == {
            "Encryption": True, "PublicAccess": False, "Authentication": "iam",
        }
        assert list(doc["Resources"])[:3] == ["MainVpc", "PublicA", "AppSg"]
        assert doc["Resources"]["AppLb"]["Properties"]["SecurityGroups"] == [{"Ref": "AppSg"}]

    def test_logical_id_collisions_suffixed(self, tables):
        doc = json.loads(cloudformation.emit(_graph(_res("web-sg", "sg"), _res("web_sg", "sg")), tables)[0])
        assert list(doc["Resources"]) == ["WebSg", "WebSg2"]

    def test_unicode_kept_verbatim(self, tables):
        code, _ = cloudformation.emit(_graph(_res("b", "bucket", bucket="données")), tables)
        assert "données" in code

    def test_renamed_key_collision(self, tables):
        graph = _graph(_res("sg", "security-group", name="a", group_name="b"))
        with pytest.raises(EmissionError):
            cloudformation.emit(graph, tables)


# ------------------------------------------------------------------ Pulumi Python
class TestPulumiPythonEmitter:
    def test_scenario_parses(self, web_app_doc, tables):
        code, filename = pulumi_python.emit(build_graph(web_app_doc, "aws"), tables)
        assert filename == "__main__.py"
        _compile(code)
        assert "import pulumi\n" in code
        assert "import pulumi_aws as aws" in code

    def test_scenario_statements(self, web_app_doc, tables):
        code, _ = pulumi_python.emit(build_graph(web_app_doc, "aws"), tables)
        assert code.index("web_sg = aws.ec2.SecurityGroup(") < code.index("web_instance = aws.ec2.Instance(")
        assert '    "web-instance",' in code
        assert "    vpc_security_group_ids=[web_sg.id]," in code
        assert "    opts=pulumi.ResourceOptions(depends_on=[web_sg])," in code
        assert '"Name": "web",' in code

    def test_empty_graph(self, tables):
        code, _ = pulumi_python.emit(_graph(), tables)
        _compile(code)
        assert "pulumi_aws" not in code

    def test_keyword_names(self, tables):
        code, _ = pulumi_python.emit(_graph(_res("class", "bucket"), _res("pulumi", "bucket")), tables)
        _compile(code)
        assert 'class_ = aws.s3.Bucket("class")' in code
        assert 'pulumi_ = aws.s3.Bucket("pulumi")' in code

    def test_lambda_module_path(self, tables):
        code, _ = pulumi_python.emit(_graph(_res("fn", "lambda", runtime="python3.12")), tables)
        assert "aws.lambda_.Function(" in code
        _compile(code)

    def test_string_escaping(self, tables):
        graph = _graph(_res("vm", "instance", user_data='echo "hi"\n\tdone\\'))
        code, _ = pulumi_python.emit(graph, tables)
        _compile(code)
        tree = ast.parse(code)
        literals = [n.value for n in ast.walk(tree) if isinstance(n, ast.Constant)]
        assert 'echo "hi"\n\tdone\\' in literals

    def test_unmapped_component_resource(self, tables):
        code, _ = pulumi_python.emit(_graph(*_UNMAPPED_REF), tables)
        _compile(code)
        assert "quantum = pulumi.ComponentResource(" in code
        assert '"unmanaged:index:ExoticService",' in code
        assert '"type": "exotic-service",' in code
        assert "subnet_id=quantum.urn," in code

    def test_unmapped_only_skips_provider_import(self, tables):
        code, _ = pulumi_python.emit(_graph(_res("q", "exotic-service")), tables)
        assert "pulumi_aws" not in code
        _compile(code)


# ------------------------------------------------------------------ Pulumi TypeScript
class TestPulumiTypeScriptEmitter:
    def test_scenario(self, web_app_doc, tables):
        code, filename = pulumi_typescript.emit(build_graph(web_app_doc, "aws"), tables)
        assert filename == "index.ts"
        assert 'import * as pulumi from "@pulumi/pulumi";' in code
        assert 'import * as aws from "@pulumi/aws";' in code
        assert code.index('const webSg = new aws.ec2.SecurityGroup("web-sg", {') < code.index(
            'const webInstance = new aws.ec2.Instance("web-instance", {'
        )
        assert '    instanceType: "t3.micro",' in code
        assert "    vpcSecurityGroupIds: [webSg.id]," in code
        assert "}, { dependsOn: [webSg] });" in code

    def test_nested_rule_fields_camel_cased(self, web_app_doc, tables):
        code, _ = pulumi_typescript.emit(build_graph(web_app_doc, "aws"), tables)
        assert "fromPort: 80," in code
        assert 'cidrBlocks: ["0.0.0.0/0"],' in code

    def test_empty_graph_imports_only_pulumi(self, tables):
        code, _ = pulumi_typescript.emit(_graph(), tables)
        assert 'import * as pulumi from "@pulumi/pulumi";' in code
        assert "@pulumi/aws" not in code
        assert "new " not in code

    def test_lambda_namespace(self, tables):
        code, _ = pulumi_typescript.emit(_graph(_res("fn", "lambda")), tables)
        assert 'const fn = new aws.lambda.Function("fn", {});' in code

    def test_reserved_word_names(self, tables):
        code, _ = pulumi_typescript.emit(_graph(_res("new", "bucket")), tables)
        assert 'const new_ = new aws.s3.Bucket("new", {});' in code

    def test_unmapped_component_resource(self, tables):
        code, _ = pulumi_typescript.emit(_graph(*_UNMAPPED_REF), tables)
        assert 'new pulumi.ComponentResource("unmanaged:index:ExoticService", "quantum", {' in code
        assert "subnetId: quantum.urn," in code

    def test_gcp_imports(self, tables):
        code, _ = pulumi_typescript.emit(_graph(_res("b", "bucket"), provider="gcp"), tables)
        assert 'import * as gcp from "@pulumi/gcp";' in code
        assert 'new gcp.storage.Bucket("b", {});' in code


# ------------------------------------------------------------------ All formats
@pytest.mark.parametrize("module", [terraform, cloudformation, pulumi_python, pulumi_typescript])
def test_emission_is_deterministic(module, three_tier_doc, tables):
    graph = build_graph(three_tier_doc, "aws")
    assert module.emit(graph, tables) == module.emit(graph, tables)


@pytest.mark.parametrize("module", [terraform, pulumi_python, pulumi_typescript])
def test_original_names_appear_in_code(module, web_app_doc, tables):
    code, _ = module.emit(build_graph(web_app_doc, "aws"), tables)
    assert "web-sg" in code
    assert "web-instance" in code


# ------------------------------------------------------------------ Reserved keys and names
class TestReservedKeys:
    @pytest.mark.parametrize("key", terraform.META_ARGUMENTS)
    def test_terraform_meta_argument_property(self, key, tables):
        graph = _graph(
            _res("net", "vpc", cidr_block="10.0.0.0/16"),
            _res("vm", "instance", deps=["net"], **{key: "x"}),
        )
        with pytest.raises(EmissionError) as exc:
            terraform.emit(graph, tables)
        assert exc.value.resource == "vm"
        assert f"'{key}'" in str(exc.value)

    @pytest.mark.parametrize("key", ["opts", "resource_name", "resourceName"])
    def test_python_constructor_parameter_property(self, key, tables):
        graph = _graph(
            _res("net", "vpc", cidr_block="10.0.0.0/16"),
            _res("vm", "instance", deps=["net"], **{key: "x"}),
        )
        with pytest.raises(EmissionError) as exc:
            pulumi_python.emit(graph, tables)
        assert exc.value.format == "pulumi-python"

    def test_same_keys_render_where_not_reserved(self, tables):
        graph = _graph(
            _res("net", "vpc", cidr_block="10.0.0.0/16"),
            _res("vm", "instance", deps=["net"], depends_on="x", opts="y"),
        )
        doc = json.loads(cloudformation.emit(graph, tables)[0])
        assert doc["Resources"]["Vm"]["Properties"]["DependsOn"] == "x"
        code, _ = pulumi_typescript.emit(graph, tables)
        assert '    dependsOn: "x",' in code
        assert "}, { dependsOn: [net] });" in code


class TestReservedIdentifiers:
    def setup_method(self):
        self.graph = _graph(
            _res("aws", "bucket"),
            _res("net", "vpc", cidr_block="10.0.0.0/16"),
            _res("vm", "instance", deps=["aws"], bucket_ref="aws"),
        )

    def test_python_does_not_rebind_provider_module(self, tables):
        code, _ = pulumi_python.emit(self.graph, tables)
        _compile(code)
        assert 'aws_ = aws.s3.Bucket("aws")' in code
        assert "net = aws.ec2.Vpc(" in code
        assert "    bucket_ref=aws_.id," in code
        assert "depends_on=[aws_]" in code

    def test_typescript_does_not_shadow_import(self, tables):
        code, _ = pulumi_typescript.emit(self.graph, tables)
        assert 'const aws_ = new aws.s3.Bucket("aws", {});' in code
        assert "bucketRef: aws_.id," in code
        assert "{ dependsOn: [aws_] }" in code

    def test_other_providers(self, tables):
        graph = _graph(_res("gcp", "bucket"), _res("b", "bucket"), provider="gcp")
        assert 'gcp_ = gcp.storage.Bucket("gcp")' in pulumi_python.emit(graph, tables)[0]
        assert 'const gcp_ = new gcp.storage.Bucket("gcp", {});' in pulumi_typescript.emit(graph, tables)[0]

    def test_declarative_formats_unaffected(self, tables):
        code, _ = terraform.emit(self.graph, tables)
        assert 'resource "aws_s3_bucket" "aws" {' in code

    def test_collision_suffixes_follow_input_order(self, tables):
        # "web-sg" comes first in the input but is emitted after "web_sg"
        graph = _graph(_res("web-sg", "sg", deps=["web_sg"]), _res("web_sg", "sg"))
        code, _ = terraform.emit(graph, tables)
        assert '# web_sg (sg)\nresource "aws_security_group" "web_sg_2" {' in code
        assert '# web-sg (sg)\nresource "aws_security_group" "web_sg" {' in code
        doc = json.loads(cloudformation.emit(graph, tables)[0])
        assert list(doc["Resources"]) == ["WebSg2", "WebSg"]
        assert doc["Resources"]["WebSg"]["Metadata"] == {"Name": "web-sg"}


# ------------------------------------------------------------------ Security group rules
class TestSecurityGroupRules:
    def test_cloudformation_rule_values_are_scalar(self, three_tier_doc, tables):
        doc = json.loads(cloudformation.emit(build_graph(three_tier_doc, "aws"), tables)[0])
        assert doc["Resources"]["AppSg"]["Properties"]["SecurityGroupIngress"] == [
            {"IpProtocol": "tcp", "FromPort": 443, "ToPort": 443, "CidrIp": "0.0.0.0/0"}
        ]

    def test_cloudformation_source_group_is_a_ref(self, tables):
        network = {"securityGroups": [
            {"name": "web-sg", "description": "web"},
            {"name": "db-sg", "description": "db", "ingress": [
                {"protocol": "tcp", "fromPort": 5432, "toPort": 5432, "sourceSecurityGroup": "web-sg"}
            ], "egress": [
                {"protocol": "tcp", "fromPort": 443, "toPort": 443, "sourceSecurityGroup": "web-sg"}
            ]},
        ]}
        doc = json.loads(cloudformation.emit(_graph(network=network), tables)[0])
        props = doc["Resources"]["DbSg"]["Properties"]
        assert props["SecurityGroupIngress"][0]["SourceSecurityGroupId"] == {"Ref": "WebSg"}
        assert props["SecurityGroupEgress"][0]["DestinationSecurityGroupId"] == {"Ref": "WebSg"}

    def test_other_formats_keep_lists(self, three_tier_doc, tables):
        graph = build_graph(three_tier_doc, "aws")
        assert 'cidr_blocks = ["0.0.0.0/0"]' in terraform.emit(graph, tables)[0]
        assert 'cidrBlocks: ["0.0.0.0/0"],' in pulumi_typescript.emit(graph, tables)[0]

    def test_several_cidrs_in_one_rule(self, tables):
        rule = {"protocol": "tcp", "from_port": 22, "to_port": 22, "cidr_blocks": ["10.0.0.0/8", "192.168.0.0/16"]}
        graph = _graph(_res("ssh", "security-group", ingress=[rule]))
        with pytest.raises(EmissionError) as exc:
            cloudformation.emit(graph, tables)
        assert "ingress.cidr_blocks" in str(exc.value)
        assert 'cidr_blocks = ["10.0.0.0/8", "192.168.0.0/16"]' in terraform.emit(graph, tables)[0]
