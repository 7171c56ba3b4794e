# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Ordered children of proxy sections: ACLs, rules and checks.

Each of these is addressed by its 0-based position under the parent section.
"""

from typing import Optional

from pydantic import Field

from .base import IndexedPayloadModel


class Acl(IndexedPayloadModel):
    """An acl line.

    Attrs:
        acl_name: Name of the ACL.
        criterion: Sample fetch the ACL tests.
        value: Pattern(s) matched against the criterion.
    """

    acl_name: str = Field(min_length=1)
    criterion: str = Field(min_length=1)
    value: Optional[str] = None


class HttpRequestRule(IndexedPayloadModel):
    """An http-request rule.

    Attrs:
        type: Rule action (allow, deny, redirect, set-header...).
        cond: if or unless.
        cond_test: Condition tested.
        hdr_name: Header name for header actions.
        hdr_format: Header value format for header actions.
        redir_type: Redirect type (location, prefix, scheme).
        redir_value: Redirect target.
        redir_code: Redirect status code.
        deny_status: Status returned by deny.
        return_status_code: Status returned by return.
        var_name: Variable name for set-var.
        var_scope: Variable scope for set-var.
        var_expr: Variable expression for set-var.
    """

    type: str = Field(min_length=1)
    cond: Optional[str] = None
    cond_test: Optional[str] = None
    hdr_name: Optional[str] = None
    hdr_format: Optional[str] = None
    redir_type: Optional[str] = None
    redir_value: Optional[str] = None
    redir_code: Optional[int] = None
    deny_status: Optional[int] = None
    return_status_code: Optional[int] = None
    var_name: Optional[str] = None
    var_scope: Optional[str] = None
    var_expr: Optional[str] = None


class HttpResponseRule(IndexedPayloadModel):
    """An http-response rule.

    Attrs:
        type: Rule action.
        cond: if or unless.
        cond_test: Condition tested.
        hdr_name: Header name for header actions.
        hdr_format: Header value format for header actions.
        redir_type: Redirect type.
        redir_value: Redirect target.
        status: Status code for set-status.
        status_reason: Reason phrase for set-status.
    """

    type: str = Field(min_length=1)
    cond: Optional[str] = None
    cond_test: Optional[str] = None
    hdr_name: Optional[str] = None
    hdr_format: Optional[str] = None
    redir_type: Optional[str] = None
    redir_value: Optional[str] = None
    status: Optional[int] = None
    status_reason: Optional[str] = None


class TcpRequestRule(IndexedPayloadModel):
    """A tcp-request rule.

    Attrs:
        type: connection, content, inspect-delay or session.
        action: Rule action.
        cond: if or unless.
        cond_test: Condition tested.
        timeout: Delay for inspect-delay.
        track_key: Sample tracked by track-sc actions.
        track_table: Table used by track-sc actions.
        var_name: Variable name for set-var.
        var_scope: Variable scope for set-var.
        expr: Expression for set-var and similar actions.
        nice_value: Priority for set-nice.
        mark_value: Mark for set-mark.
    """

    type: str = Field(min_length=1)
    action: Optional[str] = None
    cond: Optional[str] = None
    cond_test: Optional[str] = None
    timeout: Optional[int] = None
    track_key: Optional[str] = None
    track_table: Optional[str] = None
    var_name: Optional[str] = None
    var_scope: Optional[str] = None
    expr: Optional[str] = None
    nice_value: Optional[int] = None
    mark_value: Optional[str] = None


class TcpResponseRule(IndexedPayloadModel):
    """A tcp-response rule.

    Attrs:
        type: content or inspect-delay.
        action: Rule action.
        cond: if or unless.
        cond_test: Condition tested.
        timeout: Delay for inspect-delay.
        var_name: Variable name for set-var.
        var_scope: Variable scope for set-var.
        expr: Expression for set-var and similar actions.
        nice_value: Priority for set-nice.
        mark_value: Mark for set-mark.
    """

    type: str = Field(min_length=1)
    action: Optional[str] = None
    cond: Optional[str] = None
    cond_test: Optional[str] = None
    timeout: Optional[int] = None
    var_name: Optional[str] = None
    var_scope: Optional[str] = None
    expr: Optional[str] = None
    nice_value: Optional[int] = None
    mark_value: Optional[str] = None


class HttpCheck(IndexedPayloadModel):
    """An http-check directive.

    Attrs:
        type: connect, send, expect, comment...
        method: Method sent by send.
        uri: URI sent by send.
        version: HTTP version sent by send.
        match: Matching method of expect.
        pattern: Pattern of expect.
        exclamation_mark: Negate the expect.
        addr: Address for connect.
        port: Port for connect.
        check_comment: Comment reported on failure.
    """

    type: str = Field(min_length=1)
    method: Optional[str] = None
    uri: Optional[str] = None
    version: Optional[str] = None
    match: Optional[str] = None
    pattern: Optional[str] = None
    exclamation_mark: Optional[bool] = None
    addr: Optional[str] = None
    port: Optional[int] = None
    check_comment: Optional[str] = None


class TcpCheck(IndexedPayloadModel):
    """A tcp-check directive.

    Attrs:
        action: connect, send, send-binary, expect, comment...
        addr: Address for connect.
        port: Port for connect.
        data: Data sent by send.
        match: Matching method of expect.
        pattern: Pattern of expect.
        min_recv: Minimum bytes before evaluating expect.
        on_success: Log-format string on success.
        on_error: Log-format string on error.
        ssl: Use TLS for connect.
        sni: SNI for connect.
        check_comment: Comment reported on failure.
    """

    action: str = Field(min_length=1)
    addr: Optional[str] = None
    port: Optional[int] = None
    data: Optional[str] = None
    match: Optional[str] = None
    pattern: Optional[str] = None
    min_recv: Optional[int] = None
    on_success: Optional[str] = None
    on_error: Optional[str] = None
    ssl: Optional[bool] = None
    sni: Optional[str] = None
    check_comment: Optional[str] = None


class StickRule(IndexedPayloadModel):
    """A stick rule of a backend.

    Attrs:
        type: match, on, store-request or store-response.
        pattern: Sample used as the key.
        table: Stick table, defaults to the backend's own.
        cond: if or unless.
        cond_test: Condition tested.
    """

    type: str = Field(min_length=1)
    pattern: str = Field(min_length=1)
    table: Optional[str] = None
    cond: Optional[str] = None
    cond_test: Optional[str] = None
